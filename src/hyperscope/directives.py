"""Directive interpreter: turns node annotations into live bindings.

    @event|mods="handler"          event listener (see hyperscope.events)
    :attr="variable"               attribute follows a variable
    :attr="Hi ${name}"             attribute follows a template
    ::prop.path+="..."             property binding, nested path, append
    #let[-url|-local|-session]:name[|dep...]="expr"
    #jsvar="export-name"

``#component``, ``#include`` and the lifecycle tags are handled by the tree
watcher, the runtime and the component manager.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from hyperscope._tracking import tracking
from hyperscope.evaluator import evaluate, is_template, render_template, stringify
from hyperscope.events import register_event
from hyperscope.setter import create_setter, kebab_to_camel

if TYPE_CHECKING:
    from hyperscope.runtime import Runtime
    from hyperscope.scope import NodeState


LET_STORES = {"#let": None, "#let-url": "url", "#let-local": "local", "#let-session": "session"}


def bind(runtime: Runtime, node: Any, target: str, expression: str, state: NodeState) -> None:
    """Keep an attribute or property in sync with a variable or template.

    Template dependencies are whatever the first render reads.
    """
    setter = create_setter(target, node)
    scope = state.scope
    if is_template(expression):
        env = runtime.environment(state)

        def refresh(_value: Any = None) -> None:
            setter(render_template(expression, env))

        with tracking() as dependencies:
            text = render_template(expression, env)
        for signal in dependencies.values():
            signal.add_listener(refresh, state)
        setter(text)
    else:
        name = expression.strip()
        scope.signal(name).add_listener(setter, state)
        setter(scope.read(name))


def declare(runtime: Runtime, name: str, expression: str, state: NodeState) -> None:
    """Handle ``#let``: initial value, optional recompute deps, optional persistence."""
    kind, _, declaration = name.partition(":")
    if kind not in LET_STORES:
        raise ValueError(f"unknown declaration {kind!r}, expected one of {sorted(LET_STORES)}")
    raw_name, *dependencies = declaration.split("|")
    variable = kebab_to_camel(raw_name)
    if not variable:
        raise ValueError(f"{name!r} does not name a variable")
    store_name = LET_STORES[kind]
    store = getattr(runtime.stores, store_name) if store_name else None
    scope = state.scope
    env = runtime.environment(state)

    stored = store.get(variable) if store is not None else None
    if stored is not None:
        scope.write(variable, stored)
    else:
        value = evaluate(expression, env)
        scope.write(variable, value)
        if store is not None:
            store.set(variable, stringify(value))

    def recompute(_value: Any) -> None:
        scope.write(variable, evaluate(expression, env))

    for dependency in dependencies:
        scope.signal(kebab_to_camel(dependency)).add_listener(recompute, state)

    if store is not None:

        def persist(value: Any) -> None:
            store.set(variable, stringify(value))

        scope.signal(variable).add_listener(persist, state)


def export(runtime: Runtime, name: str, state: NodeState) -> None:
    """Handle ``#jsvar``: publish the scope until the node is torn down."""
    scope = state.scope
    runtime.registry.register(name, scope)
    state.cleanup.append(lambda: runtime.registry.unregister(name, scope))


def setup_attribute(runtime: Runtime, node: Any, name: str, value: str, state: NodeState) -> None:
    if name.startswith("@"):
        register_event(runtime, node, name[1:], value, state)
    elif name.startswith(":"):
        bind(runtime, node, name[1:], value, state)
    elif name.startswith("#let"):
        declare(runtime, name, value, state)
    elif name == "#jsvar":
        export(runtime, value, state)


def setup_attributes(runtime: Runtime, node: Any, state: NodeState) -> None:
    """Interpret every annotation on node, in attribute order."""
    for name in node.attribute_names():
        setup_attribute(runtime, node, name, node.get_attribute(name) or "", state)
