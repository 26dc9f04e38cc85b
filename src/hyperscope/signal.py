"""Signals: reactive cells that notify their listeners synchronously."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from hyperscope.scope import NodeState

Listener = Callable[[Any], None]
Disposer = Callable[[], None]


class Signal:
    """A single reactive value with a set of listeners.

    Every write emits, even when the value is unchanged.
    """

    __slots__ = ("value", "_listeners")

    def __init__(self, value: Any = None) -> None:
        self.value = value
        # dict keys as an insertion-ordered set
        self._listeners: dict[Listener, None] = {}

    def add_listener(self, listener: Listener, owner: NodeState | None = None) -> Disposer:
        """Subscribe listener. Returns a function that removes it.

        When owner is given, the remover is pushed onto its cleanup list so the
        subscription ends when the owning node is torn down.
        """
        self._listeners[listener] = None

        def _remove() -> None:
            self.remove_listener(listener)

        if owner is not None:
            owner.cleanup.append(_remove)
        return _remove

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.pop(listener, None)

    def emit(self) -> None:
        """Call every current listener with the current value."""
        for listener in list(self._listeners):
            listener(self.value)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def __repr__(self) -> str:
        return f"Signal({self.value!r}, listeners={len(self._listeners)})"
