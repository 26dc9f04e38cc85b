"""In-memory host tree.

A small document model that satisfies hyperscope.host: elements and text
nodes, an HTML fragment parser, a simple selector engine, event dispatch,
shadow roots, template content, a custom element registry and batched mutation
observation. It renders nothing, which makes it the host for tests and for
headless use.
"""

from __future__ import annotations

import html
import re
from html.parser import HTMLParser
from typing import Any, Callable, Iterable, Iterator

VOID_ELEMENTS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)

INSERT_POSITIONS = ("beforebegin", "afterbegin", "beforeend", "afterend")


class Event:
    """A dispatched event. detail carries custom payloads."""

    def __init__(self, type: str, detail: Any = None, *, bubbles: bool = True) -> None:
        self.type = type
        self.detail = detail
        self.bubbles = bubbles
        self.target: Element | None = None
        self.current_target: Element | None = None
        self.default_prevented = False
        self._passive = False
        self._stopped = False

    def prevent_default(self) -> None:
        if not self._passive:
            self.default_prevented = True

    def stop_propagation(self) -> None:
        self._stopped = True

    def __repr__(self) -> str:
        return f"Event({self.type!r}, detail={self.detail!r})"


class _Listener:
    __slots__ = ("type", "fn", "capture", "once", "passive")

    def __init__(self, type, fn, capture, once, passive) -> None:
        self.type = type
        self.fn = fn
        self.capture = capture
        self.once = once
        self.passive = passive


class Style(dict):
    """Inline style declarations keyed by camelCase property name."""


class Text:
    """A text node."""

    def __init__(self, data: str) -> None:
        self.data = data
        self._parent: Element | None = None

    @property
    def parent(self) -> Element | None:
        return self._parent

    @property
    def text_content(self) -> str:
        return self.data

    @property
    def outer_html(self) -> str:
        if self._parent is not None and self._parent.tag in ("script", "style"):
            return self.data
        return html.escape(self.data, quote=False)

    def clone(self, deep: bool = True) -> Text:
        return Text(self.data)

    def __repr__(self) -> str:
        return f"Text({self.data!r})"


class Element:
    """An element node."""

    def __init__(
        self,
        tag: str,
        attributes: dict[str, str] | None = None,
        children: Iterable[Element | Text | str] = (),
    ) -> None:
        self.tag = tag.lower()
        self._attributes: dict[str, str] = dict(attributes or {})
        self.child_nodes: list[Element | Text] = []
        self._parent: Element | None = None
        self._document: Document | None = None
        self._instance: Any = None
        self._observed: frozenset[str] = frozenset()
        self._listeners: list[_Listener] = []
        self.style = Style()
        self.shadow_root: ShadowRoot | None = None
        self.content: Element | None = Element("#document-fragment") if self.tag == "template" else None
        for child in children:
            self.append_child(child)

    # --- Tree ---

    @property
    def parent(self) -> Element | None:
        return self._parent

    @property
    def children(self) -> list[Element]:
        return [node for node in self.child_nodes if isinstance(node, Element)]

    @property
    def owner_document(self) -> Document | None:
        node: Element | None = self
        while node is not None:
            if node._document is not None:
                return node._document
            node = node._parent if node._parent is not None else getattr(node, "host", None)
        return None

    @property
    def is_connected(self) -> bool:
        document = self.owner_document
        if document is None:
            return False
        node: Element | None = self
        while node is not None:
            if node is document.root:
                return True
            node = node._parent if node._parent is not None else getattr(node, "host", None)
        return False

    def descendants(self) -> Iterator[Element]:
        for child in self.children:
            yield child
            yield from child.descendants()

    def append_child(self, child: Element | Text | str) -> Element | Text:
        return self.insert_before(child, None)

    def insert_before(self, child: Element | Text | str, reference: Element | Text | None) -> Element | Text:
        node = Text(child) if isinstance(child, str) else child
        if node._parent is not None:
            node._parent.remove_child(node)
        index = len(self.child_nodes) if reference is None else self.child_nodes.index(reference)
        self.child_nodes.insert(index, node)
        node._parent = self
        document = self.owner_document
        if document is not None:
            document._record(self, added=[node])
            if isinstance(node, Element) and self.is_connected:
                document._connected(node)
        return node

    def remove_child(self, child: Element | Text) -> Element | Text:
        was_connected = isinstance(child, Element) and child.is_connected
        document = self.owner_document
        self.child_nodes.remove(child)
        child._parent = None
        if document is not None:
            document._record(self, removed=[child])
            if was_connected:
                document._disconnected(child)
        return child

    def remove(self) -> None:
        if self._parent is not None:
            self._parent.remove_child(self)

    def replace_children(self, nodes: Iterable[Element | Text | str]) -> None:
        for child in list(self.child_nodes):
            self.remove_child(child)
        for node in nodes:
            self.append_child(node)

    def clone(self, deep: bool = True) -> Element:
        copy = Element(self.tag, self._attributes)
        copy.style.update(self.style)
        if deep:
            for child in self.child_nodes:
                copy.append_child(child.clone())
            if self.content is not None:
                for child in self.content.child_nodes:
                    copy.content.append_child(child.clone())
        return copy

    def clone_content(self) -> list[Element | Text]:
        source = self.content if self.content is not None else self
        return [child.clone() for child in source.child_nodes]

    def attach_shadow(self) -> ShadowRoot:
        if self.shadow_root is None:
            self.shadow_root = ShadowRoot(self)
        return self.shadow_root

    # --- Attributes ---

    def get_attribute(self, name: str) -> str | None:
        return self._attributes.get(name)

    def set_attribute(self, name: str, value: Any) -> None:
        old = self._attributes.get(name)
        new = "" if value is None else str(value)
        self._attributes[name] = new
        if self._instance is not None and name in self._observed:
            self._instance.attribute_changed(name, old, new)

    def has_attribute(self, name: str) -> bool:
        return name in self._attributes

    def remove_attribute(self, name: str) -> None:
        old = self._attributes.pop(name, None)
        if old is not None and self._instance is not None and name in self._observed:
            self._instance.attribute_changed(name, old, None)

    def attribute_names(self) -> list[str]:
        return list(self._attributes)

    @property
    def id(self) -> str:
        return self._attributes.get("id", "")

    @property
    def class_list(self) -> list[str]:
        return self._attributes.get("class", "").split()

    # --- Content ---

    @property
    def text_content(self) -> str:
        return "".join(child.text_content for child in self.child_nodes)

    @text_content.setter
    def text_content(self, value: Any) -> None:
        self.replace_children([Text("" if value is None else str(value))])

    @property
    def inner_html(self) -> str:
        source = self.content if self.content is not None else self
        return "".join(child.outer_html for child in source.child_nodes)

    @inner_html.setter
    def inner_html(self, value: Any) -> None:
        nodes = parse_html("" if value is None else str(value))
        if self.content is not None:
            self.content.replace_children(nodes)
        else:
            self.replace_children(nodes)

    @property
    def outer_html(self) -> str:
        attributes = "".join(
            f' {name}="{html.escape(value, quote=True)}"' if value else f" {name}"
            for name, value in self._attributes.items()
        )
        if self.tag in VOID_ELEMENTS:
            return f"<{self.tag}{attributes}>"
        return f"<{self.tag}{attributes}>{self.inner_html}</{self.tag}>"

    @outer_html.setter
    def outer_html(self, value: str) -> None:
        parent = self._parent
        if parent is None:
            raise ValueError("cannot replace the outer HTML of a detached element")
        for node in parse_html(value):
            parent.insert_before(node, self)
        parent.remove_child(self)

    def insert_adjacent_html(self, position: str, value: str) -> None:
        where = position.lower()
        if where not in INSERT_POSITIONS:
            raise ValueError(f"invalid insertion position: {position!r}")
        nodes = parse_html(value)
        if where in ("beforebegin", "afterend"):
            if self._parent is None:
                raise ValueError(f"{position} needs a parent element")
            siblings = self._parent.child_nodes
            index = siblings.index(self) + (where == "afterend")
            reference = siblings[index] if index < len(siblings) else None
            for node in nodes:
                self._parent.insert_before(node, reference)
        elif where == "afterbegin":
            reference = self.child_nodes[0] if self.child_nodes else None
            for node in nodes:
                self.insert_before(node, reference)
        else:
            for node in nodes:
                self.append_child(node)

    # --- Events ---

    def add_event_listener(
        self,
        event_type: str,
        listener: Callable[[Event], Any],
        *,
        capture: bool = False,
        once: bool = False,
        passive: bool = False,
    ) -> Callable[[], None]:
        for existing in self._listeners:
            if existing.type == event_type and existing.fn is listener and existing.capture == capture:
                entry = existing
                break
        else:
            entry = _Listener(event_type, listener, capture, once, passive)
            self._listeners.append(entry)

        def _remove() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return _remove

    def listener_count(self, event_type: str | None = None) -> int:
        return sum(1 for entry in self._listeners if event_type is None or entry.type == event_type)

    def _invoke(self, event: Event, capture_phase: bool | None) -> None:
        for entry in list(self._listeners):
            if entry.type != event.type or entry not in self._listeners:
                continue
            if capture_phase is not None and entry.capture != capture_phase:
                continue
            if entry.once:
                self._listeners.remove(entry)
            event.current_target = self
            event._passive = entry.passive
            entry.fn(event)
            event._passive = False

    def dispatch_event(self, event: Event) -> bool:
        """Run capture, target and bubble phases. Returns not default_prevented."""
        event.target = self
        path: list[Element] = []
        node: Element | None = self._parent if self._parent is not None else getattr(self, "host", None)
        while node is not None:
            path.append(node)
            node = node._parent if node._parent is not None else getattr(node, "host", None)
        for ancestor in reversed(path):
            if event._stopped:
                break
            ancestor._invoke(event, True)
        if not event._stopped:
            self._invoke(event, True)
            self._invoke(event, False)
        if event.bubbles:
            for ancestor in path:
                if event._stopped:
                    break
                ancestor._invoke(event, False)
        return not event.default_prevented

    # --- Queries ---

    def query_selector_all(self, selector: str) -> list[Element]:
        groups = _parse_selector(selector)
        return [el for el in self.descendants() if any(_matches(el, group) for group in groups)]

    def query_selector(self, selector: str) -> Element | None:
        groups = _parse_selector(selector)
        for el in self.descendants():
            if any(_matches(el, group) for group in groups):
                return el
        return None

    def __repr__(self) -> str:
        return f"<Element {self.tag} {self._attributes!r}>"


class ShadowRoot(Element):
    """Encapsulated subtree owned by a host element."""

    def __init__(self, host: Element) -> None:
        super().__init__("#shadow-root")
        self.host = host

    def __repr__(self) -> str:
        return f"<ShadowRoot of {self.host!r}>"


# --- Parsing ---


class _FragmentParser(HTMLParser):
    """Build Element/Text nodes from an HTML fragment."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = Element("#document-fragment")
        self.stack: list[Element] = [self.root]

    def _open(self, tag: str, attrs: list[tuple[str, str | None]]) -> Element:
        element = Element(tag, {name: value or "" for name, value in attrs})
        self.stack[-1].append_child(element)
        return element

    def handle_starttag(self, tag, attrs):
        element = self._open(tag, attrs)
        if tag in VOID_ELEMENTS:
            return
        self.stack.append(element.content if element.content is not None else element)

    def handle_startendtag(self, tag, attrs):
        self._open(tag, attrs)

    def handle_endtag(self, tag):
        for index in range(len(self.stack) - 1, 0, -1):
            node = self.stack[index]
            owner = node if node.tag != "#document-fragment" else None
            if owner is not None and owner.tag == tag:
                del self.stack[index:]
                return
            # template content fragments close with their template
            if owner is None and tag == "template":
                del self.stack[index:]
                return

    def handle_data(self, data):
        if data:
            self.stack[-1].append_child(Text(data))


def parse_html(source: str) -> list[Element | Text]:
    """Parse an HTML fragment into detached nodes."""
    parser = _FragmentParser()
    parser.feed(source)
    parser.close()
    nodes = list(parser.root.child_nodes)
    for node in nodes:
        parser.root.child_nodes.remove(node)
        node._parent = None
    return nodes


# --- Selectors ---

_SELECTOR_PART = re.compile(
    r"""
      (?P<tag>[a-zA-Z][\w-]*|\*)
    | \#(?P<id>[\w-]+)
    | \.(?P<cls>[\w-]+)
    | \[\s*(?P<attr>[^\]=\s]+)\s*(?:=\s*(?P<quote>["']?)(?P<value>.*?)(?P=quote)\s*)?\]
    """,
    re.VERBOSE,
)


def _parse_compound(compound: str, selector: str) -> list[tuple[str, str, str | None]]:
    parts: list[tuple[str, str, str | None]] = []
    position = 0
    while position < len(compound):
        match = _SELECTOR_PART.match(compound, position)
        if match is None or (match.lastgroup == "tag" and position != 0):
            raise ValueError(f"unsupported selector: {selector!r}")
        kind = "attr" if match.group("attr") else match.lastgroup
        if kind == "attr":
            parts.append(("attr", match.group("attr"), match.group("value")))
        else:
            parts.append((kind, match.group(kind), None))
        position = match.end()
    return parts


def _parse_selector(selector: str) -> list[list[list[tuple[str, str, str | None]]]]:
    groups = []
    for group in selector.split(","):
        compounds = [_parse_compound(part, selector) for part in group.split()]
        if not compounds:
            raise ValueError(f"empty selector: {selector!r}")
        groups.append(compounds)
    return groups


def _match_compound(element: Element, parts) -> bool:
    for kind, name, value in parts:
        if kind == "tag" and name != "*" and element.tag != name.lower():
            return False
        if kind == "id" and element.id != name:
            return False
        if kind == "cls" and name not in element.class_list:
            return False
        if kind == "attr":
            if not element.has_attribute(name):
                return False
            if value is not None and element.get_attribute(name) != value:
                return False
    return True


def _matches(element: Element, compounds) -> bool:
    if not _match_compound(element, compounds[-1]):
        return False
    index = len(compounds) - 2
    ancestor = element.parent
    while index >= 0 and ancestor is not None:
        if _match_compound(ancestor, compounds[index]):
            index -= 1
        ancestor = ancestor.parent
    return index < 0


# --- Document ---


class MutationRecord:
    __slots__ = ("target", "added", "removed")

    def __init__(self, target: Element, added: list[Element], removed: list[Element]) -> None:
        self.target = target
        self.added = added
        self.removed = removed

    def __repr__(self) -> str:
        return f"MutationRecord({self.target!r}, added={self.added!r}, removed={self.removed!r})"


class _Observer:
    __slots__ = ("root", "callback", "records")

    def __init__(self, root: Element, callback: Callable[[list[MutationRecord]], None]) -> None:
        self.root = root
        self.callback = callback
        self.records: list[MutationRecord] = []


class _Definition:
    __slots__ = ("factory", "observed")

    def __init__(self, factory: Callable[[Element], Any], observed: frozenset[str]) -> None:
        self.factory = factory
        self.observed = observed


class Document:
    """A document with head and body.

    Mutation records are delivered through scheduler.call_soon when a
    scheduler is given, otherwise on flush().
    """

    def __init__(self, body: str = "", head: str = "", scheduler: Any = None) -> None:
        self._definitions: dict[str, _Definition] = {}
        self._observers: list[_Observer] = []
        self._scheduler = scheduler
        self._delivery_scheduled = False
        self.root = Element("html")
        self.root._document = self
        self.head = self.root.append_child(Element("head"))
        self.body = self.root.append_child(Element("body"))
        if head:
            self.head.inner_html = head
        if body:
            self.body.inner_html = body

    def create_element(self, tag: str, attributes: dict[str, str] | None = None, *children) -> Element:
        return Element(tag, attributes, children)

    def query_selector(self, selector: str) -> Element | None:
        groups = _parse_selector(selector)
        if any(_matches(self.root, group) for group in groups):
            return self.root
        return self.root.query_selector(selector)

    def query_selector_all(self, selector: str) -> list[Element]:
        return self.root.query_selector_all(selector)

    # --- Custom elements ---

    def define(
        self,
        tag: str,
        factory: Callable[[Element], Any],
        observed_attributes: Iterable[str] = (),
    ) -> None:
        tag = tag.lower()
        if tag in self._definitions:
            raise ValueError(f"{tag!r} has already been defined")
        self._definitions[tag] = _Definition(factory, frozenset(observed_attributes))
        self._upgrade_tree(self.root, tag)

    def is_defined(self, tag: str) -> bool:
        return tag.lower() in self._definitions

    def _upgrade(self, element: Element, definition: _Definition) -> None:
        # attributes present before construction are reported once it finishes
        present = [name for name in element.attribute_names() if name in definition.observed]
        element._observed = definition.observed
        element._instance = definition.factory(element)
        for name in present:
            element._instance.attribute_changed(name, None, element.get_attribute(name))

    def _upgrade_tree(self, element: Element, tag: str) -> None:
        """Upgrade connected elements of a newly defined tag."""
        if element.tag == tag and element._instance is None:
            self._upgrade(element, self._definitions[tag])
            element._instance.connected()
            for child in element.shadow_root.children if element.shadow_root is not None else ():
                self._connected(child)
        elif element.shadow_root is not None:
            for child in element.shadow_root.children:
                self._upgrade_tree(child, tag)
        for child in element.children:
            self._upgrade_tree(child, tag)

    def _connected(self, element: Element) -> None:
        definition = self._definitions.get(element.tag)
        if definition is not None:
            if element._instance is None:
                self._upgrade(element, definition)
            element._instance.connected()
        if element.shadow_root is not None:
            for child in element.shadow_root.children:
                self._connected(child)
        for child in element.children:
            self._connected(child)

    def _disconnected(self, element: Element) -> None:
        if element._instance is not None:
            element._instance.disconnected()
        if element.shadow_root is not None:
            for child in element.shadow_root.children:
                self._disconnected(child)
        for child in element.children:
            self._disconnected(child)

    # --- Mutation observation ---

    def observe(self, root: Element, callback: Callable[[list[MutationRecord]], None]) -> Callable[[], None]:
        observer = _Observer(root, callback)
        self._observers.append(observer)

        def _stop() -> None:
            if observer in self._observers:
                self._observers.remove(observer)
            observer.records.clear()

        return _stop

    def _record(self, target: Element, added: list = (), removed: list = ()) -> None:
        added = [node for node in added if isinstance(node, Element)]
        removed = [node for node in removed if isinstance(node, Element)]
        if not added and not removed:
            return
        queued = False
        for observer in self._observers:
            node: Element | None = target
            while node is not None and node is not observer.root:
                node = node.parent
            if node is not None:
                observer.records.append(MutationRecord(target, added, removed))
                queued = True
        if queued and self._scheduler is not None and not self._delivery_scheduled:
            self._delivery_scheduled = True
            self._scheduler.call_soon(self.flush)

    def flush(self) -> None:
        """Deliver every queued mutation record now."""
        self._delivery_scheduled = False
        while any(observer.records for observer in self._observers):
            for observer in list(self._observers):
                records, observer.records = observer.records, []
                if records:
                    observer.callback(records)

    def __repr__(self) -> str:
        return f"<Document defined={sorted(self._definitions)}>"
