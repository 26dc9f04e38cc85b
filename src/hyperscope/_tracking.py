"""Dependency tracking for template bindings.

Uses a contextvar to record which Signals are read while a template is
evaluated for the first time, so the binding can subscribe to exactly those.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from hyperscope.signal import Signal

# The dependency set being collected. When set, every Scope.read() records
# the Signal it resolved.
current_dependencies: contextvars.ContextVar[dict[str, Signal] | None] = contextvars.ContextVar(
    "current_dependencies", default=None
)


def record(name: str, signal: Signal) -> None:
    """Register a read of `name` with the active collection, if any."""
    dependencies = current_dependencies.get()
    if dependencies is not None and name not in dependencies:
        dependencies[name] = signal


@contextmanager
def tracking() -> Iterator[dict[str, Signal]]:
    """Collect every Signal read inside the block, keyed by variable name."""
    dependencies: dict[str, Signal] = {}
    token = current_dependencies.set(dependencies)
    try:
        yield dependencies
    finally:
        current_dependencies.reset(token)
