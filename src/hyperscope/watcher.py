"""Tree watcher: drives setup on insertion and teardown on removal.

Mutation batches are reconciled against where each node is now: a node that
was removed and re-added in the same batch is left alone, a node that moved
under a different parent is torn down and set up again.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from hyperscope.component import define_component
from hyperscope.directives import setup_attributes
from hyperscope.host import MutationRecord, Node
from hyperscope.scope import NodeState, Scope

if TYPE_CHECKING:
    from hyperscope.runtime import Runtime

logger = logging.getLogger("hyperscope.watcher")


def _within(node: Node | None, root: Node) -> bool:
    while node is not None:
        if node is root:
            return True
        node = node.parent
    return False


def is_component_template(node: Node) -> bool:
    return node.tag == "template" and node.has_attribute("#component")


class TreeWatcher:
    def __init__(self, runtime: Runtime) -> None:
        self.runtime = runtime

    def parent_state(self, node: Node) -> NodeState | None:
        """State of the nearest set-up ancestor."""
        parent = node.parent
        while parent is not None:
            state = self.runtime.states.get(parent)
            if state is not None:
                return state
            parent = parent.parent
        return None

    def setup(self, node: Node, parent_state: NodeState | None) -> None:
        """Create node's scope under parent_state, wire its directives, recurse."""
        parent_scope = parent_state.scope if parent_state is not None else None
        existing = self.runtime.states.get(node)
        if existing is not None:
            if existing.scope.parent is parent_scope:
                return
            self.teardown(node)
        state = NodeState(
            node,
            Scope(parent_scope),
            component=parent_state.component if parent_state is not None else None,
        )
        self.runtime.states[node] = state
        if is_component_template(node):
            define_component(self.runtime, node)
            return
        setup_attributes(self.runtime, node, state)
        self.setup_children(node, state)

    def setup_children(self, node: Node, state: NodeState | None) -> None:
        for child in list(node.children):
            self.setup(child, state)

    def teardown(self, node: Node) -> None:
        """Run every cleanup below and at node, innermost first."""
        self.teardown_children(node)
        state = self.runtime.states.pop(node, None)
        if state is not None:
            state.teardown()

    def teardown_children(self, node: Node) -> None:
        for child in list(node.children):
            self.teardown(child)

    def process(self, root: Node, records: list[MutationRecord]) -> None:
        removed: dict[Node, None] = {}
        added: dict[Node, None] = {}
        for record in records:
            removed.update(dict.fromkeys(record.removed))
            added.update(dict.fromkeys(record.added))
        logger.debug("Mutation batch under %r: +%d -%d", root, len(added), len(removed))
        for node in removed:
            if not _within(node, root):
                self.teardown(node)
        for node in added:
            if _within(node, root):
                self.setup(node, self.parent_state(node))

    def observe(self, root: Node) -> Callable[[], None]:
        """Start watching root. Returns a function that stops watching."""

        def on_mutations(records: list[MutationRecord]) -> None:
            self.process(root, records)

        return self.runtime.document.observe(root, on_mutations)
