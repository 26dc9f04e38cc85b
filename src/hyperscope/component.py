"""Component lifecycle manager.

A ``<template #component="tag-name">`` becomes a custom node type. Each
instance gets a shadow copy of the template content and an isolated root
Scope: it cannot read its surroundings. Plain template attributes declare the
component's observed attributes with default-value expressions; changes from
outside are reflected into the component scope, one way.

Instance lifecycle: constructing -> connected <-> disconnected.
Top-level ``<script>`` tags in the template run at construction, or on connect
and disconnect when tagged ``#onConnected`` / ``#onDisconnected``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from hyperscope.directives import setup_attribute
from hyperscope.evaluator import evaluate, execute, stringify
from hyperscope.scope import NodeState, Scope
from hyperscope.setter import kebab_to_camel

if TYPE_CHECKING:
    from hyperscope.runtime import Runtime

logger = logging.getLogger("hyperscope.component")

DIRECTIVE_PREFIXES = ("#", ":", "@")
BUCKET_TAGS = {"#onconnected": "connect", "#ondisconnected": "disconnect"}


@dataclass
class ComponentDefinition:
    name: str
    template: Any
    default_attribute_expressions: dict[str, str] = field(default_factory=dict)
    lifecycle_scripts: dict[str, list[str]] = field(
        default_factory=lambda: {"construct": [], "connect": [], "disconnect": []}
    )
    # prefixed annotations on the template itself, wired on every instance host
    directives: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_template(cls, template: Any) -> ComponentDefinition:
        definition = cls(template.get_attribute("#component") or "", template)
        if not definition.name:
            raise ValueError("#component needs a tag name")
        for name in template.attribute_names():
            value = template.get_attribute(name) or ""
            if not name.startswith(DIRECTIVE_PREFIXES):
                definition.default_attribute_expressions[name] = value
            elif name != "#component":
                definition.directives[name] = value
        for node in template.clone_content():
            if getattr(node, "tag", None) != "script":
                continue
            tags = {name.lower() for name in node.attribute_names()}
            bucket = next((BUCKET_TAGS[tag] for tag in BUCKET_TAGS if tag in tags), "construct")
            definition.lifecycle_scripts[bucket].append(node.text_content)
        return definition

    @property
    def observed_attributes(self) -> list[str]:
        return list(self.default_attribute_expressions)


class ComponentInstance:
    """Hooks for one instance of a component, called by the host tree."""

    def __init__(self, runtime: Runtime, definition: ComponentDefinition, host: Any) -> None:
        self.runtime = runtime
        self.definition = definition
        self.host = host
        self.phase = "constructing"
        self.state: NodeState | None = None
        self._stop_watching: Callable[[], None] | None = None
        self.shadow = host.attach_shadow()
        for node in definition.template.clone_content():
            self.shadow.append_child(node)
        self._initialize()

    def _initialize(self) -> None:
        """Build the isolated scope: attributes, template directives, plain scripts."""
        state = NodeState(self.host, Scope(), component=self.host)
        self.state = state
        self.runtime.states[self.shadow] = state
        env = self.runtime.environment(state)
        for name, expression in self.definition.default_attribute_expressions.items():
            if self.host.has_attribute(name):
                value = self.host.get_attribute(name)
            else:
                value = evaluate(expression, env)
                self.host.set_attribute(name, stringify(value))
            state.scope.write(kebab_to_camel(name), value)
        for name, value in self.definition.directives.items():
            setup_attribute(self.runtime, self.host, name, value, state)
        for script in self.definition.lifecycle_scripts["construct"]:
            execute(script, env)

    def _run(self, bucket: str) -> None:
        env = self.runtime.environment(self.state)
        for script in self.definition.lifecycle_scripts[bucket]:
            execute(script, env)

    def connected(self) -> None:
        if self.phase == "connected":
            return
        if self.state is None:
            self._initialize()
        watcher = self.runtime.watcher
        watcher.setup_children(self.shadow, self.state)
        self._stop_watching = watcher.observe(self.shadow)
        self.phase = "connected"
        self.runtime.instances[self.host] = self
        logger.debug("%s connected", self.definition.name)
        self._run("connect")

    def disconnected(self) -> None:
        if self.phase != "connected":
            return
        self._run("disconnect")
        if self._stop_watching is not None:
            self._stop_watching()
            self._stop_watching = None
        self.runtime.watcher.teardown_children(self.shadow)
        self.state.teardown()
        self.runtime.states.pop(self.shadow, None)
        self.state = None
        self.phase = "disconnected"
        self.runtime.instances.pop(self.host, None)
        logger.debug("%s disconnected", self.definition.name)

    def attribute_changed(self, name: str, old: str | None, new: str | None) -> None:
        if self.state is not None:
            self.state.scope.write(kebab_to_camel(name), new)

    def __repr__(self) -> str:
        return f"<ComponentInstance {self.definition.name} {self.phase}>"


def define_component(runtime: Runtime, template: Any) -> ComponentDefinition:
    """Register the custom node type declared by a ``#component`` template."""
    definition = ComponentDefinition.from_template(template)
    existing = runtime.components.get(definition.name)
    if existing is not None:
        logger.debug("%s is already defined", definition.name)
        return existing
    runtime.components[definition.name] = definition

    def factory(host: Any) -> ComponentInstance:
        return ComponentInstance(runtime, definition, host)

    runtime.document.define(definition.name, factory, definition.observed_attributes)
    logger.debug("Defined %s observing %s", definition.name, definition.observed_attributes)
    return definition
