"""Host-side owner of the embedded view."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from hubframe.app.io.models import PageDescriptor
from hubframe.app.io.protocol import GuestCommand, GuestEvent, MenuCommand, NavigationTarget, parse_enum
from hubframe.app.services.channel import Message
from hubframe.app.services.contexts import Cancellable, Scheduler
from hubframe.app.services.event_bus import EventBus, Topic
from hubframe.app.services.navigation import NavigationStateStore
from hubframe.app.services.user_names import UserDirectory

from .view import EmbeddedView, ViewEvent

LOGGER = logging.getLogger(__name__)

DEFAULT_PARTITION = "persist:github"
NAV_DELAY_SECONDS = 0.4
SETTLE_DELAY_SECONDS = 0.1

ViewFactory = Callable[[str], EmbeddedView]
PageLoadCallback = Callable[..., None]

_CONTEXT_MENU_KINDS = {
    GuestEvent.SHOW_IMG_MENU: "img",
    GuestEvent.SHOW_LINK_MENU: "link",
    GuestEvent.SHOW_SELECTION_MENU: "selection",
}


class FrameController:
    """Creates the embedded view, relays its messages and runs menu commands.

    Every handler is expected to run on the host context; ``scheduler`` is that
    context and backs the delayed navigation and loading-indicator timers.
    """

    def __init__(
        self,
        nav_state: NavigationStateStore,
        bus: EventBus,
        view_factory: ViewFactory,
        scheduler: Scheduler,
        *,
        directory: UserDirectory | None = None,
        base_url: str = "https://github.com/",
        partition: str = DEFAULT_PARTITION,
        nav_delay: float = NAV_DELAY_SECONDS,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        coalesce_navigation: bool = False,
    ) -> None:
        self._nav_state = nav_state
        self._bus = bus
        self._view_factory = view_factory
        self._scheduler = scheduler
        self._directory = directory
        self._default_base_url = base_url
        self._partition = partition
        self._nav_delay = nav_delay
        self._settle_delay = settle_delay
        self._coalesce = coalesce_navigation
        self._pending_nav: dict[NavigationTarget, Cancellable] = {}
        self._page_load_callback: PageLoadCallback | None = None
        self._view: EmbeddedView | None = None
        self._unsubscribers: list[Callable[[], None]] = []
        self._guest_handlers: dict[GuestEvent, Callable[..., None]] = {
            GuestEvent.IS_LOGGED: self._on_is_logged,
            GuestEvent.DOM_CHANGED: self._on_dom_changed,
            GuestEvent.DOC_READY: self._on_doc_ready,
            GuestEvent.USER_IDS_GATHERED: self._on_user_ids_gathered,
            GuestEvent.SWIPE_ALLOWED: self._relay(Topic.SWIPE_ALLOWED),
            GuestEvent.DOCUMENT_CLICKED: self._relay(Topic.DOCUMENT_CLICKED),
            GuestEvent.LINK_CLICKED: self._relay(Topic.LINK_CLICKED),
            GuestEvent.EXTERNAL_LINK_CLICKED: self._relay(Topic.EXTERNAL_LINK),
            GuestEvent.SHOW_PREVIEW: self._relay(Topic.PREVIEW),
            GuestEvent.SHOW_IMG_MENU: self._context_menu(GuestEvent.SHOW_IMG_MENU),
            GuestEvent.SHOW_LINK_MENU: self._context_menu(GuestEvent.SHOW_LINK_MENU),
            GuestEvent.SHOW_SELECTION_MENU: self._context_menu(GuestEvent.SHOW_SELECTION_MENU),
            GuestEvent.CSS_READY: self._relay(Topic.CSS_READY),
        }
        self._menu_handlers: dict[MenuCommand, Callable[[], None]] = {
            MenuCommand.TOGGLE_DEVTOOLS: self._toggle_devtools,
            MenuCommand.CLEAR_COOKIES: self._clear_cookies,
        }

    @property
    def view(self) -> EmbeddedView | None:
        return self._view

    @property
    def is_ready(self) -> bool:
        return self._view is not None

    @property
    def login_url(self) -> str:
        return self._nav_state.base_url(self._default_base_url) + "login"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def init(self) -> EmbeddedView:
        """Create the view and wire every subscription; later calls are no-ops."""

        if self._view is not None:
            return self._view

        view = self._view_factory(self._partition)
        view.set_loading(True)
        self._view = view
        self._unsubscribers.extend(
            [
                view.on(ViewEvent.WILL_NAVIGATE, self._on_will_navigate),
                view.on(ViewEvent.DOM_READY, self.on_url_changed),
                view.on(ViewEvent.DID_NAVIGATE_IN_PAGE, self.on_url_changed),
                view.on(ViewEvent.IPC_MESSAGE, self.handle_guest_message),
                view.on(ViewEvent.CONSOLE_MESSAGE, self._on_console_message),
                self._bus.subscribe(Topic.GOTO, self.goto_url),
                self._bus.subscribe(Topic.MENU, self.on_menu_click),
            ]
        )
        LOGGER.info("frame.init", extra={"meta": {"partition": self._partition, "url": self.login_url}})
        view.load_url(self.login_url)
        return view

    def shutdown(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        for handle in self._pending_nav.values():
            handle.cancel()
        self._pending_nav.clear()

    def on_next_page_load(self, callback: PageLoadCallback) -> None:
        """Register the callback resolved by the next ``docReady`` signal."""

        self._page_load_callback = callback

    # ------------------------------------------------------------------
    # Navigation commands
    # ------------------------------------------------------------------
    def goto_url(self, target: Any) -> None:
        view = self._require_view()
        view.set_loading(True)
        if not isinstance(target, str) or not target:
            return

        direction = parse_enum(NavigationTarget, target)
        if direction is None:
            LOGGER.info("frame.goto", extra={"meta": {"url": target}})
            view.load_url(target)
            return

        action = {
            NavigationTarget.PREV: view.go_back,
            NavigationTarget.NEXT: view.go_forward,
            NavigationTarget.REFRESH: view.reload,
        }[direction]
        if not self._coalesce:
            self._scheduler.call_later(self._nav_delay, action)
            return
        previous = self._pending_nav.pop(direction, None)
        if previous is not None:
            previous.cancel()
        self._pending_nav[direction] = self._scheduler.call_later(
            self._nav_delay, self._run_pending, direction, action
        )

    def _run_pending(self, direction: NavigationTarget, action: Callable[[], None]) -> None:
        self._pending_nav.pop(direction, None)
        action()

    def _on_will_navigate(self, *_args: Any) -> None:
        self._require_view().set_loading(True)

    def on_url_changed(self, *_args: Any) -> None:
        view = self._require_view()
        self._nav_state.record_url(view.get_url())
        self._replace_user_names()
        self._scheduler.call_later(self._settle_delay, view.set_loading, False)
        self._bus.publish(Topic.URL_CHANGED, view)

    # ------------------------------------------------------------------
    # Menu commands
    # ------------------------------------------------------------------
    def on_menu_click(self, command: Any) -> None:
        member = parse_enum(MenuCommand, command)
        if member is None:
            LOGGER.debug("frame.unknown_menu_command", extra={"meta": {"command": repr(command)}})
            return
        self._menu_handlers[member]()

    def _toggle_devtools(self) -> None:
        view = self._require_view()
        if view.is_devtools_opened():
            view.close_devtools()
        else:
            view.open_devtools()

    def _clear_cookies(self) -> None:
        # Read the login URL before the configuration (and baseUrl) is wiped.
        login_url = self.login_url
        removed = self._nav_state.clear_all()
        LOGGER.info("frame.clear_cookies", extra={"meta": {"config_keys": removed}})
        self._require_view().clear_storage_data(lambda: self.goto_url(login_url))

    # ------------------------------------------------------------------
    # Guest messages
    # ------------------------------------------------------------------
    def handle_guest_message(self, message: Message) -> None:
        event = parse_enum(GuestEvent, message.name)
        if event is None:
            LOGGER.debug("frame.unknown_guest_event", extra={"meta": {"name": message.name}})
            return
        self._guest_handlers[event](*message.args)

    def _on_is_logged(self, logged_in: Any = None, *_rest: Any) -> None:
        if not logged_in:
            self._bus.publish(Topic.TOGGLE_NOTIFICATIONS, False)

    def _on_dom_changed(self, url: Any = "", issue: Any = None, *_rest: Any) -> None:
        descriptor = _as_descriptor(issue)
        self._nav_state.record_navigation(url if isinstance(url, str) else "", descriptor)
        self._replace_user_names()
        self._bus.publish(Topic.ISSUE_CHANGED, descriptor)

    def _on_doc_ready(self, *args: Any) -> None:
        callback, self._page_load_callback = self._page_load_callback, None
        if callback is not None:
            callback(*args)

    def _on_user_ids_gathered(self, ids: Any = None, *_rest: Any) -> None:
        if self._directory is None or not isinstance(ids, list) or not ids:
            return
        users = self._directory.lookup(ids)
        if users:
            self._require_view().send(GuestCommand.USER_IDS_AND_NAMES.value, users)

    def _replace_user_names(self) -> None:
        self._require_view().send(GuestCommand.GATHER_USER_IDS.value)

    def _relay(self, topic: str) -> Callable[..., None]:
        def _publish(*args: Any) -> None:
            self._bus.publish(topic, *args)

        return _publish

    def _context_menu(self, event: GuestEvent) -> Callable[..., None]:
        kind = _CONTEXT_MENU_KINDS[event]

        def _publish(value: Any = None, *_rest: Any) -> None:
            self._bus.publish(Topic.CONTEXT_MENU, kind, value)

        return _publish

    def _on_console_message(self, message: Any = "", *_rest: Any) -> None:
        LOGGER.debug("frame.console", extra={"meta": {"message": str(message)}})

    # ------------------------------------------------------------------
    # Host commands forwarded to the page
    # ------------------------------------------------------------------
    def inject_css(self, css: str) -> None:
        self._require_view().send(GuestCommand.INJECT_CSS.value, css)

    def zoom(self, level: int | float) -> None:
        self._require_view().send(GuestCommand.ZOOM.value, level)

    def swipe_start(self) -> None:
        self._require_view().send(GuestCommand.SWIPE_START.value)

    def swipe_end(self) -> None:
        self._require_view().send(GuestCommand.SWIPE_END.value)

    def _require_view(self) -> EmbeddedView:
        if self._view is None:
            raise RuntimeError("FrameController.init() has not been called")
        return self._view


def _as_descriptor(issue: Any) -> PageDescriptor | None:
    if issue is None or isinstance(issue, PageDescriptor):
        return issue
    if not isinstance(issue, Mapping):
        return None
    try:
        return PageDescriptor.model_validate(issue)
    except ValidationError:
        LOGGER.warning("frame.invalid_descriptor", extra={"meta": {"issue": dict(issue)}})
        return None


__all__ = ["FrameController", "NAV_DELAY_SECONDS", "SETTLE_DELAY_SECONDS", "ViewFactory"]
