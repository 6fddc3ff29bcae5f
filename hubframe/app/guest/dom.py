"""Guest-side document model built on BeautifulSoup.

The embedded page is represented by a :class:`GuestDocument`: a parsed tree
plus the bits of browser state the content observer reads (location, focus,
text selection, layout probes) and the hooks it subscribes to (event
listeners and mutation observers). All mutations go through the document so
observers see them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

LOGGER = logging.getLogger(__name__)

SCROLL_SLACK_PX = 5
HORIZONTAL_SCROLL_CLASSES = frozenset({"blob-wrapper", "overflow-x-auto"})
_OVERFLOW_RE = re.compile(r"overflow(?:-x)?\s*:\s*(auto|scroll)", re.IGNORECASE)
_TEXT_INPUT_TYPES = re.compile(r"^(?:text|search|password|tel|url)$", re.IGNORECASE)


@dataclass(slots=True)
class ElementMetrics:
    scroll_width: float
    offset_width: float


LayoutProbe = Callable[[Tag], "ElementMetrics | None"]


@dataclass(slots=True)
class DomEvent:
    """Input event dispatched to document-level listeners."""

    type: str
    target: Tag
    meta_key: bool = False
    ctrl_key: bool = False
    default_prevented: bool = False
    propagation_stopped: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


@dataclass(slots=True)
class _Registration:
    target: Tag
    child_list: bool
    subtree: bool
    attributes: bool


class MutationObserver:
    """Receives a callback for every matching mutation of the document."""

    def __init__(self, document: "GuestDocument", callback: Callable[[str, Tag], None]) -> None:
        self._document = document
        self._callback = callback
        self._registrations: list[_Registration] = []

    def observe(self, target: Tag, *, child_list: bool = True, subtree: bool = False, attributes: bool = False) -> None:
        self._registrations.append(_Registration(target, child_list, subtree, attributes))
        self._document._attach(self)

    def disconnect(self) -> None:
        self._registrations.clear()
        self._document._detach(self)

    def _matches(self, kind: str, node: Tag) -> bool:
        for registration in self._registrations:
            if kind == "childList" and not registration.child_list:
                continue
            if kind == "attributes" and not registration.attributes:
                continue
            if node is registration.target:
                return True
            if registration.subtree and any(parent is registration.target for parent in node.parents):
                return True
        return False

    def _notify(self, kind: str, node: Tag) -> None:
        if self._matches(kind, node):
            self._callback(kind, node)


def inner_text(element: Tag | None) -> str:
    if element is None:
        return ""
    return " ".join(element.get_text(" ").split())


def has_class(element: Tag, name: str) -> bool:
    return name in (element.get("class") or [])


def closest(element: Tag | None, name: str) -> Tag | None:
    node = element
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        if node.name == name:
            return node
        node = node.parent
    return None


class GuestDocument:
    """Live document of one page load inside the guest context."""

    def __init__(self, html: str, url: str, *, layout: LayoutProbe | None = None) -> None:
        self.soup = BeautifulSoup(html or "", "lxml")
        self.url = url or ""
        self.layout = layout
        self.active_element: Tag | None = None
        self._field_value: str | None = None
        self._field_selection: tuple[int, int] | None = None
        self._selection_text = ""
        self._listeners: dict[str, list[Callable[[DomEvent], None]]] = {}
        self._observers: list[MutationObserver] = []
        self._ensure_structure()

    def _ensure_structure(self) -> None:
        html = self.soup.find("html")
        if html is None:
            html = self.soup.new_tag("html")
            self.soup.append(html)
        if self.soup.head is None:
            html.insert(0, self.soup.new_tag("head"))
        if self.soup.body is None:
            html.append(self.soup.new_tag("body"))

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def title(self) -> str:
        title = self.soup.title
        return inner_text(title) if title is not None else ""

    @property
    def host(self) -> str:
        try:
            return urlsplit(self.url).netloc.lower()
        except ValueError:
            return ""

    @property
    def head(self) -> Tag:
        return self.soup.head

    @property
    def body(self) -> Tag:
        return self.soup.body

    def select(self, selector: str) -> list[Tag]:
        return list(self.soup.select(selector))

    def select_one(self, selector: str) -> Tag | None:
        return self.soup.select_one(selector)

    def resolve_url(self, raw: str | None) -> str:
        """Absolute form of an ``href``/``src`` attribute, like ``element.href``."""

        if raw is None:
            return ""
        try:
            return urljoin(self.url, raw.strip())
        except ValueError:
            return ""

    def is_scrollable(self, element: Tag) -> bool:
        """True when ``element`` overflows horizontally."""

        if self.layout is not None:
            metrics = self.layout(element)
            if metrics is not None:
                return metrics.scroll_width > metrics.offset_width + SCROLL_SLACK_PX
        if element.name == "pre":
            return True
        if HORIZONTAL_SCROLL_CLASSES.intersection(element.get("class") or []):
            return True
        style = element.get("style") or ""
        return bool(_OVERFLOW_RE.search(style))

    # ------------------------------------------------------------------
    # Focus & selection
    # ------------------------------------------------------------------
    def focus(
        self,
        element: Tag | None,
        *,
        selection_start: int | None = None,
        selection_end: int | None = None,
        value: str | None = None,
    ) -> None:
        self.active_element = element
        self._field_value = value
        if selection_start is None or selection_end is None:
            self._field_selection = None
        else:
            self._field_selection = (int(selection_start), int(selection_end))

    def select_text(self, text: str) -> None:
        self._selection_text = text or ""

    def selection_text(self) -> str:
        """Selected text, preferring a selection inside a focused text field."""

        active = self.active_element
        if active is not None and self._field_selection is not None and _is_text_field(active):
            start, end = self._field_selection
            return self._active_value()[start:end]
        return self._selection_text

    def _active_value(self) -> str:
        if self._field_value is not None:
            return self._field_value
        active = self.active_element
        if active is None:
            return ""
        if active.name == "textarea":
            return active.get_text()
        return str(active.get("value") or "")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def add_event_listener(self, event_type: str, listener: Callable[[DomEvent], None]) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_event_listener(self, event_type: str, listener: Callable[[DomEvent], None]) -> None:
        listeners = self._listeners.get(event_type) or []
        if listener in listeners:
            listeners.remove(listener)

    def dispatch(self, event: DomEvent) -> bool:
        """Run document listeners; return ``False`` when the default was prevented."""

        for listener in tuple(self._listeners.get(event.type, ())):
            listener(event)
        return not event.default_prevented

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def _attach(self, observer: MutationObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def _detach(self, observer: MutationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, kind: str, node: Tag) -> None:
        for observer in tuple(self._observers):
            observer._notify(kind, node)

    def set_text(self, element: Tag, text: str) -> None:
        if inner_text(element) == text and len(element.contents) <= 1:
            return
        element.clear()
        element.append(text)
        self._notify("childList", element)

    def set_attribute(self, element: Tag, name: str, value: Any) -> None:
        if element.get(name) == value:
            return
        element[name] = value
        self._notify("attributes", element)

    def add_class(self, element: Tag, name: str) -> None:
        classes = list(element.get("class") or [])
        if name in classes:
            return
        classes.append(name)
        element["class"] = classes
        self._notify("attributes", element)

    def set_style(self, element: Tag, prop: str, value: str) -> None:
        declarations = [
            part.strip()
            for part in str(element.get("style") or "").split(";")
            if part.strip() and part.split(":", 1)[0].strip().lower() != prop
        ]
        declarations.append(f"{prop}: {value}")
        self.set_attribute(element, "style", "; ".join(declarations))

    def append_child(self, parent: Tag, child: Tag) -> Tag:
        parent.append(child)
        self._notify("childList", parent)
        return child

    def remove(self, element: Tag) -> None:
        parent = element.parent
        element.decompose()
        if isinstance(parent, Tag):
            self._notify("childList", parent)

    def new_tag(self, name: str, **attrs: Any) -> Tag:
        return self.soup.new_tag(name, attrs=attrs)


def _is_text_field(element: Tag) -> bool:
    if element.name == "textarea":
        return True
    if element.name != "input":
        return False
    return bool(_TEXT_INPUT_TYPES.match(str(element.get("type") or "text")))


__all__ = [
    "DomEvent",
    "ElementMetrics",
    "GuestDocument",
    "LayoutProbe",
    "MutationObserver",
    "closest",
    "has_class",
    "inner_text",
]
