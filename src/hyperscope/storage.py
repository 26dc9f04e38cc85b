"""Persisted key/value stores backing ``#let-url``, ``#let-local`` and ``#let-session``.

Every store satisfies the same contract: get(key) -> str | None and
set(key, str). Write failures are not handled here.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Protocol
from urllib.parse import parse_qsl, urlencode


class Storage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStorage:
    """Process-lifetime store, the session-scoped default."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial) if initial else {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def __repr__(self) -> str:
        return f"MemoryStorage({self._data!r})"


class FileStorage:
    """Durable store kept as a JSON object in a file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text(encoding="utf-8") or "{}")

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")


class QueryStringStorage:
    """Store backed by a URL query string.

    on_change receives the new query string after every write, the place to
    update the visible location without adding a history entry.
    """

    def __init__(self, query: str = "", on_change: Callable[[str], None] | None = None) -> None:
        self._params: dict[str, str] = dict(parse_qsl(query.lstrip("?"), keep_blank_values=True))
        self._on_change = on_change

    @property
    def query(self) -> str:
        return urlencode(self._params)

    def get(self, key: str) -> str | None:
        return self._params.get(key)

    def set(self, key: str, value: str) -> None:
        self._params[key] = value
        if self._on_change is not None:
            self._on_change(self.query)


@dataclass
class Stores:
    """The three persisted stores a runtime writes through to."""

    url: Storage = field(default_factory=QueryStringStorage)
    local: Storage = field(default_factory=MemoryStorage)
    session: Storage = field(default_factory=MemoryStorage)
