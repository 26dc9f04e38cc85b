"""The host tree interface.

The engine never renders anything itself. It talks to the document through
these protocols; hyperscope.dom is an in-memory implementation of them.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Protocol, Sequence


class Node(Protocol):
    tag: str

    @property
    def parent(self) -> Node | None: ...

    @property
    def children(self) -> Sequence[Node]: ...

    text_content: str
    inner_html: str
    outer_html: str

    def get_attribute(self, name: str) -> str | None: ...

    def set_attribute(self, name: str, value: str) -> None: ...

    def has_attribute(self, name: str) -> bool: ...

    def attribute_names(self) -> list[str]: ...

    def add_event_listener(
        self,
        event_type: str,
        listener: Callable[[Any], None],
        *,
        capture: bool = False,
        once: bool = False,
        passive: bool = False,
    ) -> Callable[[], None]:
        """Attach listener; the returned function detaches it."""

    def append_child(self, child: Node) -> Node: ...

    def insert_adjacent_html(self, position: str, html: str) -> None: ...

    def attach_shadow(self) -> Node: ...

    def clone_content(self) -> list[Node]:
        """Deep copies of a template node's content."""


class MutationRecord(Protocol):
    target: Node
    added: Sequence[Node]
    removed: Sequence[Node]


class ComponentHooks(Protocol):
    """What a custom node type's instance must answer to."""

    def connected(self) -> None: ...

    def disconnected(self) -> None: ...

    def attribute_changed(self, name: str, old: str | None, new: str | None) -> None: ...


class Document(Protocol):
    @property
    def head(self) -> Node: ...

    @property
    def body(self) -> Node: ...

    def query_selector(self, selector: str) -> Node | None: ...

    def observe(
        self, root: Node, callback: Callable[[list[MutationRecord]], None]
    ) -> Callable[[], None]:
        """Report batched element insertions/removals below root.

        Returns a function that stops the observation.
        """

    def define(
        self,
        tag: str,
        factory: Callable[[Node], ComponentHooks],
        observed_attributes: Iterable[str],
    ) -> None:
        """Register a custom node type. factory runs once per instance."""
