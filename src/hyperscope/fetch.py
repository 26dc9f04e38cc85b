"""Fetch directives: requests triggered by events, routed by a target grammar.

    @click|fetch:json="'/api/user', params={'id': user_id} -> user"

The part before the first ``->`` is a call-argument list for the transport
(the triggering event is available as ``e`` and ``event``). The target is one of:

- ``this``: the JSON body's keys are written into the scope
- ``console``: the parsed body goes to the diagnostic sink
- an existing variable: the parsed body is written to it
- otherwise a selector, optionally followed by ``-> subtarget``: the text body
  is inserted there (inner HTML replaced when no subtarget is given)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Protocol
from urllib.parse import parse_qsl, urljoin

import requests

from hyperscope.console import console
from hyperscope.evaluator import evaluate_arguments

if TYPE_CHECKING:
    from hyperscope.runtime import Runtime
    from hyperscope.scope import NodeState

logger = logging.getLogger("hyperscope.fetch")

SUBTARGETS = ("beforeBegin", "afterBegin", "beforeEnd", "afterEnd", "textContent", "outerHTML")
PARSE_MODES = ("text", "json", "formData", "blob", "arrayBuffer")
DEFAULT_INCLUDE_TARGET = "body -> beforeEnd"


class Response(Protocol):
    ok: bool
    status_code: int
    reason: str
    text: str
    content: bytes

    def json(self) -> Any: ...


class Transport(Protocol):
    def fetch(self, url: str, method: str = "GET", **options: Any) -> Response: ...


class RequestsTransport:
    """Transport backed by a requests.Session."""

    def __init__(self, session: requests.Session | None = None, base_url: str = "", timeout: float = 10.0) -> None:
        self.session = session or requests.Session()
        self.base_url = base_url
        self.timeout = timeout

    def fetch(self, url: str, method: str = "GET", **options: Any) -> requests.Response:
        options.setdefault("timeout", self.timeout)
        return self.session.request(method.upper(), urljoin(self.base_url, url), **options)


@dataclass(frozen=True)
class FetchDirective:
    args_expression: str
    target: str
    subtarget: str | None = None
    parse_mode: str = "text"

    @classmethod
    def parse(cls, query: str, parse_mode: str | None = None) -> FetchDirective:
        parts = [part.strip() for part in query.split("->")]
        if len(parts) < 2 or not parts[1]:
            raise ValueError(f"fetch directive needs a target: {query!r}")
        mode = parse_mode or "text"
        if mode not in PARSE_MODES:
            raise ValueError(f"unknown parse mode {mode!r}, expected one of {PARSE_MODES}")
        subtarget = parts[2] if len(parts) > 2 and parts[2] else None
        return cls(parts[0], parts[1], subtarget, mode)


def parse_body(response: Response, mode: str = "text") -> Any:
    if mode == "json":
        return response.json()
    if mode == "formData":
        return dict(parse_qsl(response.text, keep_blank_values=True))
    if mode == "blob":
        return bytes(response.content)
    if mode == "arrayBuffer":
        return bytearray(response.content)
    return response.text


def parse_location(location: str) -> tuple[str, str | None]:
    """Split ``"selector -> subtarget"``."""
    selector, _, subtarget = location.partition("->")
    return selector.strip(), subtarget.strip() or None


def insert_at(document: Any, selector: str, subtarget: str | None, content: str) -> None:
    """Insert content at the first node matching selector."""
    node = document.query_selector(selector)
    if node is None:
        raise LookupError(f"no node matches {selector!r}")
    where = (subtarget or "").lower()
    if not where:
        node.inner_html = content
    elif where == "outerhtml":
        node.outer_html = content
    elif where == "textcontent":
        node.text_content = content
    elif where in ("beforebegin", "afterbegin", "beforeend", "afterend"):
        node.insert_adjacent_html(where, content)
    else:
        raise ValueError(f"unknown subtarget {subtarget!r}, expected one of {SUBTARGETS}")


def insert_at_target(document: Any, location: str, content: str) -> None:
    insert_at(document, *parse_location(location), content)


def _request(runtime: Runtime, url: str, options: dict[str, Any]) -> Callable[[], Response]:
    return lambda: runtime.transport.fetch(url, **options)


def _failed(description: str, response: Response) -> bool:
    if response.ok:
        return False
    logger.error(
        "Failed to fetch(%s), got status %s - %s", description, response.status_code, response.reason
    )
    return True


def create_fetch_handler(
    runtime: Runtime, query: str, state: NodeState, parse_mode: str | None = None
) -> Callable[[Any], None]:
    """Build the event handler for a ``fetch`` modified event directive."""
    directive = FetchDirective.parse(query, parse_mode)
    scope = state.scope

    def route(response: Response) -> None:
        if not state.alive:
            logger.debug("Dropping response for torn-down node %r", state.node)
            return
        if _failed(directive.args_expression, response):
            return
        target = directive.target
        if target == "this":
            for key, value in response.json().items():
                scope.write(key, value)
        elif target == "console":
            console.log(parse_body(response, directive.parse_mode))
        elif scope.exists(target):
            scope.write(target, parse_body(response, directive.parse_mode))
        else:
            insert_at(runtime.document, target, directive.subtarget, response.text)

    def handle(event: Any) -> None:
        env = runtime.environment(state).bind(e=event, event=event)
        args, options = evaluate_arguments(directive.args_expression, env)
        url, *init = args
        for extra in init:
            options = {**extra, **options}
        logger.debug("fetch(%r, %r) -> %s", url, options, target_label(directive))
        runtime.scheduler.submit(_request(runtime, url, options), route)

    return handle


def target_label(directive: FetchDirective) -> str:
    if directive.subtarget:
        return f"{directive.target} -> {directive.subtarget}"
    return directive.target


def include(runtime: Runtime, link: Any) -> None:
    """Fetch a head link's resource and insert its text at the ``#include`` location."""
    href = link.get_attribute("href")
    location = link.get_attribute("#include") or DEFAULT_INCLUDE_TARGET

    def insert(response: Response) -> None:
        if _failed(href, response):
            return
        insert_at_target(runtime.document, location, response.text)

    runtime.scheduler.submit(_request(runtime, href, {}), insert)
