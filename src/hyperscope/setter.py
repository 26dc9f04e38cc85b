"""Binding setters: write resolved values into a node's attributes or properties."""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping
from typing import Any, Callable

from hyperscope.evaluator import stringify

_KEBAB = re.compile(r"-.")

# Short and DOM-style names for the node's content surfaces.
PROPERTY_ALIASES = {
    "text": "text_content",
    "textContent": "text_content",
    "html": "inner_html",
    "innerHtml": "inner_html",
    "innerHTML": "inner_html",
    "outerHtml": "outer_html",
    "outerHTML": "outer_html",
}


def kebab_to_camel(name: str) -> str:
    """Decode hyphenated names: ``-x`` becomes ``X``, ``--`` is a literal ``-``.

    >>> kebab_to_camel("background-color")
    'backgroundColor'
    >>> kebab_to_camel("--a")
    '-a'
    """
    return _KEBAB.sub(lambda m: "-" if m.group()[1] == "-" else m.group()[1].upper(), name)


def _member(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def set_deep(obj: Any, path: str, value: Any, append: bool = False) -> None:
    """Assign value at a dot-separated property path below obj."""
    *parents, last = path.split(".")
    for key in parents:
        obj = _member(obj, key)
    if append:
        value = stringify(_member(obj, last)) + stringify(value)
    if isinstance(obj, MutableMapping):
        obj[last] = value
    else:
        setattr(obj, last, value)


def create_setter(name: str, node: Any) -> Callable[[Any], None]:
    """Build the writer for a binding target.

    name is the directive name without its leading colon: ``title`` targets the
    title attribute, ``:style.background-color`` the nested property. A
    trailing ``+`` switches from replace to append.
    """
    append = name.endswith("+")
    if append:
        name = name[:-1]
    if name.startswith(":"):
        path = kebab_to_camel(name[1:])
        path = PROPERTY_ALIASES.get(path, path)

        def set_property(value: Any) -> None:
            set_deep(node, path, value, append)

        return set_property

    if append:

        def append_attribute(value: Any) -> None:
            node.set_attribute(name, stringify(node.get_attribute(name)) + stringify(value))

        return append_attribute

    def set_attribute(value: Any) -> None:
        node.set_attribute(name, stringify(value))

    return set_attribute
