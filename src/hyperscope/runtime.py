"""Runtime: wires the engine to a document and its collaborators.

Every collaborator is injected:

    runtime = Runtime(
        document,
        scheduler=ThreadScheduler(marshal=app.call_from_thread),
        transport=RequestsTransport(base_url="https://example.com"),
        stores=Stores(local=FileStorage("state.json")),
    )
    runtime.start()

Timers, fetch completions and mutation deliveries resume on the UI thread.
With a marshal they are handed to it directly. With the default
ThreadScheduler() they queue until the UI loop pumps them:

    runtime = Runtime(document)
    runtime.start()
    while running:
        runtime.scheduler.run_pending(timeout=0.05)
"""

from __future__ import annotations

import logging
from typing import Any

from hyperscope.component import ComponentDefinition, ComponentInstance
from hyperscope.console import console
from hyperscope.evaluator import Environment
from hyperscope.fetch import RequestsTransport, Transport, include
from hyperscope.host import Document, Node
from hyperscope.registry import ScopeRegistry
from hyperscope.scheduler import Scheduler, ThreadScheduler
from hyperscope.scope import NodeState, Scope
from hyperscope.storage import Stores
from hyperscope.watcher import TreeWatcher

logger = logging.getLogger("hyperscope.runtime")


class Runtime:
    """Owns node state, component definitions and the document's tree watcher."""

    def __init__(
        self,
        document: Document,
        *,
        scheduler: Scheduler | None = None,
        transport: Transport | None = None,
        stores: Stores | None = None,
        registry: ScopeRegistry | None = None,
        globals: dict[str, Any] | None = None,
    ) -> None:
        self.document = document
        self.scheduler = scheduler or ThreadScheduler()
        self.transport = transport or RequestsTransport()
        self.stores = stores or Stores()
        self.registry = registry or ScopeRegistry()
        self.globals: dict[str, Any] = {"console": console, **(globals or {})}
        self.states: dict[Node, NodeState] = {}
        self.components: dict[str, ComponentDefinition] = {}
        self.instances: dict[Node, ComponentInstance] = {}  # connected components by host
        self.watcher = TreeWatcher(self)
        self._stop_watching = None

    def environment(self, state: NodeState) -> Environment:
        return Environment(
            state.scope,
            node=state.node,
            component=state.component,
            globals=self.globals,
        )

    def state_of(self, node: Node) -> NodeState | None:
        return self.states.get(node)

    def scope_of(self, node: Node) -> Scope | None:
        state = self.states.get(node)
        return state.scope if state is not None else None

    def start(self) -> None:
        """Fetch head includes, set up the body, then watch it for changes."""
        for link in self.document.head.children:
            if link.tag == "link" and link.has_attribute("#include"):
                include(self, link)
        self.watcher.setup(self.document.body, None)
        self._stop_watching = self.watcher.observe(self.document.body)
        logger.debug("Started with %d nodes set up", len(self.states))

    def stop(self) -> None:
        """Stop watching, tear the body down and disconnect every component."""
        if self._stop_watching is not None:
            self._stop_watching()
            self._stop_watching = None
        self.watcher.teardown(self.document.body)
        # most recently connected first
        for instance in reversed(list(self.instances.values())):
            instance.disconnected()
        logger.debug("Stopped, %d node states remain", len(self.states))
