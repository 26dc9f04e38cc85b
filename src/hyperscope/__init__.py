"""hyperscope: scoped reactive variables and declarative bindings for document trees."""

from importlib.metadata import version as _version

__version__ = _version("hyperscope")

from hyperscope.signal import Signal
from hyperscope.scope import NodeState, PreviousValues, Scope
from hyperscope.evaluator import (
    Environment,
    ExpressionError,
    evaluate,
    execute,
    render_template,
)
from hyperscope.setter import create_setter, kebab_to_camel
from hyperscope.scheduler import ManualScheduler, Scheduler, ThreadScheduler
from hyperscope.storage import FileStorage, MemoryStorage, QueryStringStorage, Stores
from hyperscope.fetch import FetchDirective, RequestsTransport
from hyperscope.registry import ScopeRegistry
from hyperscope.component import ComponentDefinition, ComponentInstance
from hyperscope.watcher import TreeWatcher
from hyperscope.runtime import Runtime
from hyperscope.console import Console
# dom is not imported here: it is one host implementation among others

__all__ = [
    "Signal",
    "Scope",
    "NodeState",
    "PreviousValues",
    "Environment",
    "ExpressionError",
    "evaluate",
    "execute",
    "render_template",
    "create_setter",
    "kebab_to_camel",
    "Scheduler",
    "ThreadScheduler",
    "ManualScheduler",
    "MemoryStorage",
    "FileStorage",
    "QueryStringStorage",
    "Stores",
    "FetchDirective",
    "RequestsTransport",
    "ScopeRegistry",
    "ComponentDefinition",
    "ComponentInstance",
    "TreeWatcher",
    "Runtime",
    "Console",
]
