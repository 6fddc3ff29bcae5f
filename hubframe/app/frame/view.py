"""Embedded view abstraction and its requests/BeautifulSoup implementation."""

from __future__ import annotations

import html
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from enum import Enum
from http.cookiejar import LoadError, MozillaCookieJar
from pathlib import Path
from typing import Any, Callable

import requests

from hubframe.app.guest.dom import DomEvent, GuestDocument, LayoutProbe, closest
from hubframe.app.guest.observer import DEBOUNCE_SECONDS, ContentObserver
from hubframe.app.io.models import strip_fragment
from hubframe.app.services.channel import Message, MessageChannel
from hubframe.app.services.contexts import Scheduler

LOGGER = logging.getLogger(__name__)

ERROR_PAGE_URL = "chrome-error://chromewebdata/"
PERSISTENT_PREFIX = "persist:"


class ViewError(RuntimeError):
    """Raised when an embedded view cannot perform the requested operation."""


class ViewEvent(str, Enum):
    WILL_NAVIGATE = "will-navigate"
    DOM_READY = "dom-ready"
    DID_NAVIGATE_IN_PAGE = "did-navigate-in-page"
    IPC_MESSAGE = "ipc-message"
    CONSOLE_MESSAGE = "console-message"


ViewHandler = Callable[..., None]


class EmbeddedView(ABC):
    """Host-side handle of the sandboxed page.

    Events are always emitted on the host context.
    """

    def __init__(self, partition: str) -> None:
        self.partition = partition
        self._handlers: dict[ViewEvent, list[ViewHandler]] = defaultdict(list)
        self._loading = True

    def on(self, event: ViewEvent, handler: ViewHandler) -> Callable[[], None]:
        self._handlers[ViewEvent(event)].append(handler)

        def _off() -> None:
            handlers = self._handlers.get(ViewEvent(event)) or []
            if handler in handlers:
                handlers.remove(handler)

        return _off

    def _emit(self, event: ViewEvent, *args: Any) -> None:
        for handler in tuple(self._handlers.get(event, ())):
            handler(*args)

    def set_loading(self, loading: bool) -> None:
        self._loading = bool(loading)

    def is_loading(self) -> bool:
        return self._loading

    @abstractmethod
    def load_url(self, url: str) -> None: ...

    @abstractmethod
    def go_back(self) -> None: ...

    @abstractmethod
    def go_forward(self) -> None: ...

    @abstractmethod
    def reload(self) -> None: ...

    @abstractmethod
    def get_url(self) -> str: ...

    @abstractmethod
    def is_devtools_opened(self) -> bool: ...

    @abstractmethod
    def open_devtools(self) -> None: ...

    @abstractmethod
    def close_devtools(self) -> None: ...

    @abstractmethod
    def send(self, name: str, *args: Any) -> None:
        """Post a command to the page's content observer."""

    @abstractmethod
    def clear_storage_data(self, callback: Callable[[], None] | None = None) -> None: ...


def partition_cookie_path(partitions_dir: Path | None, partition: str) -> Path | None:
    """Cookie file backing ``partition``; ``None`` for in-memory partitions."""

    if partitions_dir is None or not partition.startswith(PERSISTENT_PREFIX):
        return None
    name = partition[len(PERSISTENT_PREFIX):].strip() or "default"
    safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in name)
    return Path(partitions_dir) / f"{safe}.cookies.txt"


def _error_page(url: str, reason: str) -> str:
    return (
        "<html><head><title>{title}</title></head>"
        '<body class="neterror"><h1>This site can\'t be reached</h1><p>{reason}</p></body></html>'
    ).format(title=html.escape(url), reason=html.escape(reason))


class HeadlessView(EmbeddedView):
    """Embedded view that fetches pages over HTTP and models them as soup.

    Page loads, DOM events and the content observer run on ``guest``; all view
    events and ``ipc-message`` deliveries run on ``host``.
    """

    def __init__(
        self,
        partition: str,
        *,
        guest: Scheduler,
        host: Scheduler,
        partitions_dir: Path | None = None,
        session: requests.Session | None = None,
        timeout: float = 10.0,
        user_agent: str | None = None,
        debounce: float = DEBOUNCE_SECONDS,
        layout: LayoutProbe | None = None,
    ) -> None:
        super().__init__(partition)
        self._guest = guest
        self._host = host
        self._timeout = timeout
        self._debounce = debounce
        self._layout = layout
        self._session = session or requests.Session()
        if user_agent:
            self._session.headers["User-Agent"] = user_agent
        self._cookie_path = partition_cookie_path(partitions_dir, partition)
        self._cookies = self._load_cookies()
        self._session.cookies = self._cookies

        self._lock = threading.RLock()
        self._url = ""
        self._history: list[str] = []
        self._index = -1
        self._generation = 0
        self._devtools = False
        self._closed = False

        self._document: GuestDocument | None = None
        self._observer: ContentObserver | None = None
        self._to_host = MessageChannel(f"{partition}:to-host", host)
        self._to_host.connect(self._on_guest_message)
        self._to_guest = MessageChannel(f"{partition}:to-guest", guest)

    # ------------------------------------------------------------------
    # Partition storage
    # ------------------------------------------------------------------
    def _load_cookies(self) -> MozillaCookieJar:
        if self._cookie_path is None:
            return MozillaCookieJar()
        jar = MozillaCookieJar(str(self._cookie_path))
        if self._cookie_path.exists():
            try:
                jar.load(ignore_discard=True, ignore_expires=True)
            except (LoadError, OSError):
                LOGGER.warning("view.cookies_unreadable", extra={"meta": {"path": str(self._cookie_path)}})
        return jar

    def _save_cookies(self) -> None:
        if self._cookie_path is None:
            return
        self._cookie_path.parent.mkdir(parents=True, exist_ok=True)
        self._cookies.save(ignore_discard=True, ignore_expires=True)

    def clear_storage_data(self, callback: Callable[[], None] | None = None) -> None:
        def _clear() -> None:
            self._cookies.clear()
            self._save_cookies()
            LOGGER.info("view.storage_cleared", extra={"meta": {"partition": self.partition}})
            if callback is not None:
                self._host.call_soon(callback)

        self._guest.call_soon(_clear)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def _ensure_open(self) -> None:
        if self._closed:
            raise ViewError(f"view for partition {self.partition!r} is closed")

    def get_url(self) -> str:
        with self._lock:
            return self._url

    @property
    def history(self) -> list[str]:
        with self._lock:
            return list(self._history)

    def can_go_back(self) -> bool:
        with self._lock:
            return self._index > 0

    def can_go_forward(self) -> bool:
        with self._lock:
            return 0 <= self._index < len(self._history) - 1

    def load_url(self, url: str) -> None:
        self._ensure_open()
        if not isinstance(url, str) or not url:
            raise ViewError("load_url requires a non-empty URL")
        with self._lock:
            del self._history[self._index + 1:]
            self._history.append(url)
            self._index = len(self._history) - 1
            in_page = self._is_in_page(url)
        if in_page:
            self._navigate_in_page(url)
        else:
            self._start_load(url)

    def go_back(self) -> None:
        self._traverse(-1)

    def go_forward(self) -> None:
        self._traverse(1)

    def _traverse(self, step: int) -> None:
        self._ensure_open()
        with self._lock:
            target = self._index + step
            if target < 0 or target >= len(self._history):
                LOGGER.debug("view.history_edge", extra={"meta": {"step": step}})
                return
            self._index = target
            url = self._history[target]
            in_page = self._is_in_page(url)
        if in_page:
            self._navigate_in_page(url)
        else:
            self._start_load(url)

    def reload(self) -> None:
        self._ensure_open()
        with self._lock:
            url = self._history[self._index] if self._index >= 0 else self._url
        if url:
            self._start_load(url)

    def _is_in_page(self, url: str) -> bool:
        if not self._url or self._document is None or "#" not in url:
            return False
        return strip_fragment(url) == strip_fragment(self._url)

    def _navigate_in_page(self, url: str) -> None:
        with self._lock:
            self._url = url
        document = self._document

        def _update() -> None:
            if document is not None:
                document.url = url

        self._guest.call_soon(_update)
        self._emit(ViewEvent.DID_NAVIGATE_IN_PAGE, url)

    def _start_load(self, url: str) -> None:
        with self._lock:
            self._generation += 1
            generation = self._generation
        self._guest.call_soon(self._load_in_guest, url, generation)

    def _load_in_guest(self, url: str, generation: int) -> None:
        if generation != self._generation:
            return
        final_url, markup = self._fetch(url)
        if generation != self._generation:
            LOGGER.debug("view.load_superseded", extra={"meta": {"url": url}})
            return

        if self._observer is not None:
            self._observer.dispose()
        document = GuestDocument(markup, final_url, layout=self._layout)
        observer = ContentObserver(document, self._to_host, self._guest, debounce=self._debounce)
        self._document = document
        self._observer = observer
        self._to_guest.connect(observer.handle_command)

        self._host.call_soon(self._commit, final_url, generation)
        observer.install()

    def _fetch(self, url: str) -> tuple[str, str]:
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            LOGGER.warning("view.load_failed", extra={"meta": {"url": url, "error": str(exc)}})
            self._host.call_soon(self._emit, ViewEvent.CONSOLE_MESSAGE, f"Failed to load {url}: {exc}")
            return ERROR_PAGE_URL, _error_page(url, str(exc))
        self._save_cookies()
        LOGGER.debug(
            "view.loaded",
            extra={"meta": {"url": url, "final_url": response.url, "status": response.status_code}},
        )
        return response.url or url, response.text

    def _commit(self, url: str, generation: int) -> None:
        if generation != self._generation:
            return
        with self._lock:
            self._url = url
            if url != ERROR_PAGE_URL and 0 <= self._index < len(self._history):
                self._history[self._index] = url
        self._emit(ViewEvent.DOM_READY, url)

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------
    def send(self, name: str, *args: Any) -> None:
        self._to_guest.send(name, *args)

    def _on_guest_message(self, message: Message) -> None:
        self._emit(ViewEvent.IPC_MESSAGE, message)

    # ------------------------------------------------------------------
    # Devtools
    # ------------------------------------------------------------------
    def is_devtools_opened(self) -> bool:
        return self._devtools

    def open_devtools(self) -> None:
        self._devtools = True
        LOGGER.info("view.devtools_opened", extra={"meta": {"partition": self.partition}})

    def close_devtools(self) -> None:
        self._devtools = False
        LOGGER.info("view.devtools_closed", extra={"meta": {"partition": self.partition}})

    # ------------------------------------------------------------------
    # User input (any thread; handled on the guest context)
    # ------------------------------------------------------------------
    def click(self, selector: str, *, meta: bool = False, ctrl: bool = False) -> None:
        self._guest.call_soon(self._dispatch_click, selector, meta, ctrl)

    def context_menu(self, selector: str) -> None:
        self._guest.call_soon(self._dispatch_simple, "contextmenu", selector)

    def wheel(self, selector: str) -> None:
        self._guest.call_soon(self._dispatch_simple, "wheel", selector)

    def focus_field(
        self,
        selector: str | None,
        selection_start: int | None = None,
        selection_end: int | None = None,
        value: str | None = None,
    ) -> None:
        def _focus() -> None:
            document = self._document
            if document is None:
                return
            element = document.select_one(selector) if selector else None
            document.focus(element, selection_start=selection_start, selection_end=selection_end, value=value)

        self._guest.call_soon(_focus)

    def select_text(self, text: str) -> None:
        def _select() -> None:
            if self._document is not None:
                self._document.select_text(text)

        self._guest.call_soon(_select)

    def _target(self, selector: str):
        document = self._document
        if document is None:
            LOGGER.debug("view.no_document", extra={"meta": {"selector": selector}})
            return None, None
        element = document.select_one(selector)
        if element is None:
            LOGGER.debug("view.no_target", extra={"meta": {"selector": selector}})
        return document, element

    def _dispatch_simple(self, event_type: str, selector: str) -> None:
        document, element = self._target(selector)
        if element is not None:
            document.dispatch(DomEvent(event_type, element))

    def _dispatch_click(self, selector: str, meta: bool, ctrl: bool) -> None:
        document, element = self._target(selector)
        if element is None:
            return
        if not document.dispatch(DomEvent("click", element, meta_key=meta, ctrl_key=ctrl)):
            return
        anchor = closest(element, "a")
        if anchor is None or anchor.get("href") is None:
            return
        href = document.resolve_url(anchor.get("href"))
        if href:
            self._host.call_soon(self._follow_link, href)

    def _follow_link(self, url: str) -> None:
        if self._closed:
            return
        self._emit(ViewEvent.WILL_NAVIGATE, url)
        self.load_url(url)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with self._lock:
            self._generation += 1
        observer = self._observer

        def _dispose() -> None:
            if observer is not None:
                observer.dispose()
            self._session.close()

        self._guest.call_soon(_dispose)


__all__ = [
    "ERROR_PAGE_URL",
    "EmbeddedView",
    "HeadlessView",
    "ViewError",
    "ViewEvent",
    "partition_cookie_path",
]
