"""Event pipeline: ``@event|modifier[:arg]`` directives.

Modifiers:
    once, capture, passive   listener options
    delay:<ms>               run the handler <ms> after the event
    throttle:<ms>            trailing edge: at most one delivery per interval,
                             always the most recent event
    fetch[:<parse mode>]     the value is a fetch directive, not a handler

Delayed and throttled callbacks check that their node is still alive before
running. The throttle timer is cancelled at teardown; delay timers are not.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from hyperscope.evaluator import evaluate
from hyperscope.fetch import create_fetch_handler
from hyperscope.setter import kebab_to_camel

if TYPE_CHECKING:
    from hyperscope.runtime import Runtime
    from hyperscope.scope import NodeState

logger = logging.getLogger("hyperscope.events")


@dataclass
class EventOptions:
    once: bool = False
    capture: bool = False
    passive: bool = False
    delay: float | None = None  # seconds
    throttle: float | None = None  # seconds
    fetch: bool = False
    parse_mode: str | None = None


def _milliseconds(key: str, arg: str, name: str) -> float:
    """Seconds for a ``delay:<ms>`` or ``throttle:<ms>`` argument."""
    try:
        milliseconds = float(arg)
    except ValueError:
        raise ValueError(f"{key} needs a duration in milliseconds, got {arg!r} in {name!r}") from None
    if milliseconds < 0:
        raise ValueError(f"{key} duration must not be negative, got {arg!r} in {name!r}")
    return milliseconds / 1000


def parse_event_directive(name: str) -> tuple[str, EventOptions]:
    """Split ``click|once|delay:200`` into the decoded event name and options."""
    raw_event, *raw_modifiers = name.split("|")
    options = EventOptions()
    for modifier in raw_modifiers:
        key, _, arg = modifier.partition(":")
        if key in ("once", "capture", "passive"):
            setattr(options, key, True)
        elif key in ("delay", "throttle"):
            setattr(options, key, _milliseconds(key, arg, name))
        elif key == "fetch":
            options.fetch = True
            options.parse_mode = arg or None
        else:
            logger.warning("Ignoring unknown event modifier %r on %r", modifier, name)
    return kebab_to_camel(raw_event), options


def _throttled(runtime: Runtime, state: NodeState, interval: float, deliver: Callable[[Any], None]):
    pending: list[Any] = []
    timer: list[Any] = [None]

    def flush() -> None:
        timer[0] = None
        if pending and state.alive:
            event = pending.pop()
            pending.clear()
            deliver(event)

    def on_event(event: Any) -> None:
        pending[:] = [event]
        if timer[0] is None:
            timer[0] = runtime.scheduler.call_later(interval, flush)

    def cancel() -> None:
        if timer[0] is not None:
            timer[0].cancel()
            timer[0] = None
        pending.clear()

    state.cleanup.append(cancel)
    return on_event


def register_event(runtime: Runtime, node: Any, name: str, expression: str, state: NodeState) -> None:
    """Wire one ``@`` directive. name excludes the leading ``@``."""
    event_name, options = parse_event_directive(name)
    if options.fetch:
        handler = create_fetch_handler(runtime, expression, state, options.parse_mode)
    else:
        handler = evaluate(expression, runtime.environment(state))
        if not callable(handler):
            raise TypeError(f"@{name} must evaluate to a callable, got {handler!r}")

    def invoke(event: Any) -> None:
        if state.alive:
            handler(event)

    if options.delay is not None:
        delay = options.delay

        def deliver(event: Any) -> None:
            runtime.scheduler.call_later(delay, lambda: invoke(event))

    else:
        deliver = invoke

    listener = _throttled(runtime, state, options.throttle, deliver) if options.throttle is not None else deliver
    state.cleanup.append(
        node.add_event_listener(
            event_name,
            listener,
            capture=options.capture,
            once=options.once,
            passive=options.passive,
        )
    )
