"""Scopes: per-node variable environments chained to their parent.

A name that exists anywhere up the chain is owned by the first ancestor that
declared it: reads and writes go to that ancestor's Signal and are never
shadowed. Unknown names get a local Signal on first touch.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterator

from hyperscope import _tracking
from hyperscope.signal import Signal


class Scope:
    """Named Signals plus a parent reference and a previous-value snapshot."""

    __slots__ = ("parent", "signals", "old")

    def __init__(self, parent: Scope | None = None) -> None:
        self.parent = parent
        self.signals: dict[str, Signal] = {}
        self.old: dict[str, Any] = {}

    def exists(self, name: str) -> bool:
        """True if name is declared here or in any ancestor."""
        scope: Scope | None = self
        while scope is not None:
            if name in scope.signals:
                return True
            scope = scope.parent
        return False

    def owner(self, name: str) -> Scope:
        """The scope whose Signal backs name, creating a local one if needed."""
        if self.parent is not None and self.parent.exists(name):
            return self.parent.owner(name)
        if name not in self.signals:
            self.signals[name] = Signal()
        return self

    def signal(self, name: str) -> Signal:
        return self.owner(name).signals[name]

    def read(self, name: str) -> Any:
        signal = self.signal(name)
        _tracking.record(name, signal)
        return signal.value

    def write(self, name: str, value: Any) -> None:
        """Set name on its owning scope, remember the prior value, then emit."""
        owner = self.owner(name)
        signal = owner.signals[name]
        owner.old[name] = signal.value
        signal.value = value
        signal.emit()

    def previous(self, name: str) -> Any:
        """The value name held before its most recent write."""
        if not self.exists(name):
            return None
        return self.owner(name).old.get(name)

    # Explicit environment interface
    get = read
    set = write
    has = exists

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.exists(name)

    def __getitem__(self, name: str) -> Any:
        return self.read(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.write(name, value)

    # Attribute access for variables whose names are not Scope members: this.count
    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name in Scope.__slots__:
            raise AttributeError(name)
        return self.read(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in Scope.__slots__:
            object.__setattr__(self, name, value)
        else:
            self.write(name, value)

    def __repr__(self) -> str:
        root = "root" if self.parent is None else "child"
        return f"Scope({root}, {sorted(self.signals)})"


class PreviousValues(Mapping):
    """Read-only view of previous values, resolved through the scope chain."""

    __slots__ = ("_scope",)

    def __init__(self, scope: Scope) -> None:
        self._scope = scope

    def __getitem__(self, name: str) -> Any:
        return self._scope.previous(name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._scope.previous(name)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        scope: Scope | None = self._scope
        while scope is not None:
            for name in scope.old:
                if name not in seen:
                    seen.add(name)
                    yield name
            scope = scope.parent

    def __len__(self) -> int:
        return sum(1 for _ in self)


class NodeState:
    """Everything the engine attaches to one tree node.

    cleanup holds unsubscribe thunks; each runs exactly once at teardown.
    """

    __slots__ = ("node", "scope", "component", "cleanup", "alive")

    def __init__(self, node: Any, scope: Scope, component: Any = None) -> None:
        self.node = node
        self.scope = scope
        self.component = component
        self.cleanup: list[Callable[[], None]] = []
        self.alive = True

    def teardown(self) -> None:
        """Run and drop every cleanup callback, then mark the state dead."""
        callbacks, self.cleanup = self.cleanup, []
        for callback in callbacks:
            callback()
        self.alive = False

    def __repr__(self) -> str:
        status = "alive" if self.alive else "torn down"
        return f"NodeState({self.node!r}, {status}, cleanup={len(self.cleanup)})"
