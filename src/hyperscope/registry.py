"""Named registry of exported scopes (``#jsvar``).

An explicit service object owned by the runtime. Entries live exactly as long
as the node that registered them.
"""

from __future__ import annotations

from typing import Iterator

from hyperscope.scope import Scope


class ScopeRegistry:
    """Maps export names to scope accessors for code outside the tree."""

    def __init__(self) -> None:
        self._scopes: dict[str, Scope] = {}

    def register(self, name: str, scope: Scope) -> None:
        self._scopes[name] = scope

    def unregister(self, name: str, scope: Scope | None = None) -> None:
        """Remove name. With scope given, only if it is still the registered one."""
        if scope is None or self._scopes.get(name) is scope:
            self._scopes.pop(name, None)

    def get(self, name: str) -> Scope | None:
        return self._scopes.get(name)

    def __getitem__(self, name: str) -> Scope:
        return self._scopes[name]

    def __contains__(self, name: object) -> bool:
        return name in self._scopes

    def __iter__(self) -> Iterator[str]:
        return iter(self._scopes)

    def __len__(self) -> int:
        return len(self._scopes)

    def __repr__(self) -> str:
        return f"ScopeRegistry({sorted(self._scopes)})"
