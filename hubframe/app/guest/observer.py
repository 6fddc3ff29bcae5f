"""Content observer installed into every page the embedded view loads."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from hubframe.app.io.protocol import GuestCommand, GuestEvent, parse_enum
from hubframe.app.services.channel import Message, MessageChannel
from hubframe.app.services.contexts import Cancellable, Scheduler

from .dom import DomEvent, GuestDocument, MutationObserver, closest
from .extract import extract_page
from .usernames import gather_user_ids, replace_user_names

LOGGER = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.2
MAIN_REGION = "div[role=main]"
LOGGED_IN_CLASS = "logged-in"
ACCESSIBILITY_AID = ".accessibility-aid"


def is_external(url: str, current_host: str) -> bool:
    """True when ``url`` has a scheme and its host differs from ``current_host``.

    Host-less schemes such as ``mailto:`` count as external. Anything without a
    scheme counts as internal.
    """

    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if not parts.scheme:
        return False
    return parts.netloc.lower() != current_host.lower()


class ContentObserver:
    """Watches one :class:`GuestDocument` and reports to the host.

    Instances live exactly as long as the page they were installed into; the
    embedded view creates a new one on every load.
    """

    def __init__(
        self,
        document: GuestDocument,
        channel: MessageChannel,
        scheduler: Scheduler,
        *,
        debounce: float = DEBOUNCE_SECONDS,
    ) -> None:
        self.document = document
        self._channel = channel
        self._scheduler = scheduler
        self._debounce = debounce
        self._timer: Cancellable | None = None
        self._mutations: MutationObserver | None = None
        self._is_scrolling = False
        self._is_wheeling = False
        self._commands: dict[GuestCommand, Callable[..., None]] = {
            GuestCommand.GATHER_USER_IDS: self.gather_user_ids,
            GuestCommand.USER_IDS_AND_NAMES: self.update_user_names,
            GuestCommand.INJECT_CSS: self.inject_css,
            GuestCommand.ZOOM: self.zoom,
            GuestCommand.SWIPE_START: self.on_swipe_start,
            GuestCommand.SWIPE_END: self.on_swipe_end,
        }

    def _emit(self, event: GuestEvent, *args: Any) -> None:
        self._channel.send(event.value, *args)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def install(self) -> None:
        """Equivalent of the page's ``DOMContentLoaded`` hook."""

        self._observe_changes()

        aid = self.document.select_one(ACCESSIBILITY_AID)
        if aid is not None:
            self.document.remove(aid)

        self.document.add_event_listener("click", self.on_click)
        self.document.add_event_listener("contextmenu", self.on_context_menu)
        self.document.add_event_listener("wheel", self.on_wheel)

        body_classes = self.document.body.get("class") or []
        self._emit(GuestEvent.IS_LOGGED, LOGGED_IN_CLASS in body_classes)
        self._emit(GuestEvent.DOC_READY)

        self.on_dom_change()

    def dispose(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._mutations is not None:
            self._mutations.disconnect()
            self._mutations = None
        self.document.remove_event_listener("click", self.on_click)
        self.document.remove_event_listener("contextmenu", self.on_context_menu)
        self.document.remove_event_listener("wheel", self.on_wheel)

    def handle_command(self, message: Message) -> None:
        command = parse_enum(GuestCommand, message.name)
        if command is None:
            LOGGER.debug("observer.unknown_command", extra={"meta": {"name": message.name}})
            return
        self._commands[command](*message.args)

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------
    def _observe_changes(self) -> None:
        target = self.document.select_one(MAIN_REGION)
        if target is None:
            LOGGER.debug("observer.no_main_region", extra={"meta": {"url": self.document.url}})
            return
        self._mutations = MutationObserver(self.document, lambda _kind, _node: self.on_dom_change())
        self._mutations.observe(target, child_list=True, subtree=True)

    def on_dom_change(self) -> None:
        """Restart the idle timer; extraction runs once the page goes quiet."""

        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._scheduler.call_later(self._debounce, self._report_page)

    def _report_page(self) -> None:
        self._timer = None
        descriptor = extract_page(self.document.soup, self.document.url)
        self._emit(GuestEvent.DOM_CHANGED, descriptor.url, descriptor)

    # ------------------------------------------------------------------
    # Host commands
    # ------------------------------------------------------------------
    def gather_user_ids(self) -> None:
        self._emit(GuestEvent.USER_IDS_GATHERED, gather_user_ids(self.document))

    def update_user_names(self, users: Mapping[str, Any] | None = None) -> None:
        if not isinstance(users, Mapping):
            return
        replace_user_names(self.document, users)

    def inject_css(self, css: str = "") -> None:
        style = self.document.new_tag("style")
        style.string = css or ""
        self.document.append_child(self.document.head, style)
        self._emit(GuestEvent.CSS_READY)

    def zoom(self, level: int | float = 0) -> None:
        try:
            scale = 1 + float(level) * 0.1
        except (TypeError, ValueError):
            return
        self.document.set_style(self.document.body, "zoom", f"{scale:g}")

    def on_swipe_start(self) -> None:
        self._is_scrolling = True
        self._is_wheeling = False

    def on_swipe_end(self) -> None:
        self._is_scrolling = False

    # ------------------------------------------------------------------
    # User input
    # ------------------------------------------------------------------
    def on_wheel(self, event: DomEvent) -> None:
        if not self._is_scrolling or self._is_wheeling:
            return
        self._is_wheeling = True
        node: Any = event.target
        while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
            if node.name == "body":
                break
            if self.document.is_scrollable(node):
                return
            node = node.parent
        self._emit(GuestEvent.SWIPE_ALLOWED)

    def on_click(self, event: DomEvent) -> None:
        self._emit(GuestEvent.DOCUMENT_CLICKED)
        element = event.target

        if event.meta_key or event.ctrl_key:
            anchor = closest(element, "a")
            if element.name == "img":
                self._emit(GuestEvent.SHOW_PREVIEW, self.document.resolve_url(element.get("src")))
            elif anchor is not None:
                self._emit(GuestEvent.SHOW_PREVIEW, self.document.resolve_url(anchor.get("href")))
            if anchor is not None:
                event.stop_propagation()
                event.prevent_default()
            return

        anchor = closest(element, "a")
        if anchor is None:
            return
        raw_href = anchor.get("href")
        href = self.document.resolve_url(raw_href)
        if is_external(href, self.document.host):
            event.prevent_default()
            self._emit(GuestEvent.EXTERNAL_LINK_CLICKED, href)
        else:
            self._emit(GuestEvent.LINK_CLICKED, href, raw_href)

    def on_context_menu(self, event: DomEvent) -> None:
        target = event.target
        if target.name == "img":
            self._emit(GuestEvent.SHOW_IMG_MENU, target.get("src"))
            return
        if target.name == "a":
            self._emit(GuestEvent.SHOW_LINK_MENU, target.get("href"))
            return
        selected = self.document.selection_text()
        if selected:
            self._emit(GuestEvent.SHOW_SELECTION_MENU, selected)


__all__ = ["ContentObserver", "DEBOUNCE_SECONDS", "is_external"]
