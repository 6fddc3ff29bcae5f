from __future__ import annotations

from pathlib import Path

import pytest
from requests.cookies import create_cookie

from hubframe.app.frame.view import (
    ERROR_PAGE_URL,
    HeadlessView,
    ViewError,
    ViewEvent,
    partition_cookie_path,
)
from tests.frame_helpers import ISSUE_HTML, PLAIN_HTML, FakeResponse, FakeSession, ManualScheduler

LOGIN = "https://github.com/login"
ISSUE = "https://github.com/acme/widgets/issues/42"
OTHER = "https://github.com/acme/widgets/issues/7"


class ViewRig:
    def __init__(self, tmp_path: Path, pages: dict | None = None) -> None:
        self.scheduler = ManualScheduler()
        self.session = FakeSession(
            pages
            if pages is not None
            else {LOGIN: PLAIN_HTML, ISSUE: ISSUE_HTML, OTHER: PLAIN_HTML}
        )
        self.view = HeadlessView(
            "persist:github",
            guest=self.scheduler,
            host=self.scheduler,
            partitions_dir=tmp_path / "partitions",
            session=self.session,
        )
        self.events: list[tuple] = []
        self.view.on(ViewEvent.DOM_READY, lambda url: self.events.append(("dom-ready", url)))
        self.view.on(ViewEvent.DID_NAVIGATE_IN_PAGE, lambda url: self.events.append(("in-page", url)))
        self.view.on(ViewEvent.WILL_NAVIGATE, lambda url: self.events.append(("will-navigate", url)))
        self.view.on(ViewEvent.CONSOLE_MESSAGE, lambda text: self.events.append(("console", text)))
        self.view.on(ViewEvent.IPC_MESSAGE, lambda message: self.events.append(("ipc", message.name, message.args)))

    def run(self, seconds: float = 0.0) -> list[tuple]:
        self.scheduler.advance(seconds)
        events, self.events = self.events, []
        return events

    def ipc(self, seconds: float = 0.0) -> list[str]:
        return [event[1] for event in self.run(seconds) if event[0] == "ipc"]


@pytest.fixture()
def rig(tmp_path: Path) -> ViewRig:
    return ViewRig(tmp_path)


def test_load_commits_then_reports_from_page(rig: ViewRig) -> None:
    rig.view.load_url(ISSUE)

    events = rig.run()

    assert events[0] == ("dom-ready", ISSUE)
    assert [event[1] for event in events[1:]] == ["isLogged", "docReady"]
    assert rig.view.get_url() == ISSUE
    dom_changed = [event for event in rig.run(0.2) if event[:2] == ("ipc", "domChanged")]
    assert dom_changed[0][2][1]["id"] == "42"


def test_network_failure_shows_error_page(rig: ViewRig) -> None:
    rig.view.load_url("https://unreachable.invalid/")

    events = rig.run()

    assert ("dom-ready", ERROR_PAGE_URL) in events
    assert any(event[0] == "console" for event in events)
    assert rig.view.get_url() == ERROR_PAGE_URL
    dom_changed = [event for event in rig.run(0.2) if event[:2] == ("ipc", "domChanged")]
    assert dom_changed[0][2][0] == ""


def test_redirect_commits_final_url(tmp_path: Path) -> None:
    rig = ViewRig(tmp_path, {"https://github.com/": FakeResponse(LOGIN, PLAIN_HTML)})

    rig.view.load_url("https://github.com/")
    rig.run()

    assert rig.view.get_url() == LOGIN
    assert rig.view.history == [LOGIN]


def test_fragment_navigation_stays_in_page(rig: ViewRig) -> None:
    rig.view.load_url(ISSUE)
    rig.run()

    rig.view.load_url(ISSUE + "#issuecomment-1")

    assert rig.run() == [("in-page", ISSUE + "#issuecomment-1")]
    assert rig.session.requests == [ISSUE]
    assert rig.view.get_url() == ISSUE + "#issuecomment-1"


def test_back_forward_and_reload(rig: ViewRig) -> None:
    for url in (LOGIN, ISSUE, OTHER):
        rig.view.load_url(url)
        rig.run()

    rig.view.go_back()
    rig.run()
    assert rig.view.get_url() == ISSUE
    assert rig.view.can_go_forward()

    rig.view.go_forward()
    rig.run()
    assert rig.view.get_url() == OTHER

    rig.view.reload()
    rig.run()
    assert rig.session.requests == [LOGIN, ISSUE, OTHER, ISSUE, OTHER, OTHER]

    rig.view.go_forward()
    assert rig.run() == []


def test_newer_load_supersedes_queued_one(rig: ViewRig) -> None:
    rig.view.load_url(ISSUE)
    rig.view.load_url(OTHER)

    events = rig.run()

    assert [event for event in events if event[0] == "dom-ready"] == [("dom-ready", OTHER)]
    assert rig.session.requests == [OTHER]


def test_cross_host_click_does_not_navigate(rig: ViewRig) -> None:
    rig.view.load_url(ISSUE)
    rig.run(0.2)

    rig.view.click("#external-child")

    assert rig.ipc() == ["documentClicked", "externalLinkClicked"]
    assert rig.session.requests == [ISSUE]


def test_same_host_click_navigates(rig: ViewRig) -> None:
    rig.view.load_url(ISSUE)
    rig.run(0.2)

    rig.view.click("#same-host")
    events = rig.run()

    assert ("will-navigate", OTHER) in events
    assert ("dom-ready", OTHER) in events
    assert rig.session.requests == [ISSUE, OTHER]


def test_context_menu_and_selection_entry_points(rig: ViewRig) -> None:
    rig.view.load_url(ISSUE)
    rig.run(0.2)

    rig.view.focus_field("#reply", 0, 5)
    rig.view.context_menu("#text")

    assert rig.run() == [("ipc", "showSelectionMenu", ("hello",))]

    rig.view.focus_field(None)
    rig.view.select_text("page text")
    rig.view.context_menu("#text")
    assert rig.run() == [("ipc", "showSelectionMenu", ("page text",))]


def test_wheel_entry_point_during_swipe(rig: ViewRig) -> None:
    rig.view.load_url(ISSUE)
    rig.run(0.2)

    rig.view.send("swipe-start")
    rig.view.wheel("#text")

    assert rig.ipc() == ["swipe-allowed"]


def test_commands_reach_current_page(rig: ViewRig) -> None:
    rig.view.load_url(ISSUE)
    rig.run(0.2)

    rig.view.send("injectCss", "body { margin: 0 }")

    assert rig.ipc() == ["cssReady"]


def test_devtools_flag(rig: ViewRig) -> None:
    assert not rig.view.is_devtools_opened()
    rig.view.open_devtools()
    assert rig.view.is_devtools_opened()
    rig.view.close_devtools()
    assert not rig.view.is_devtools_opened()


def test_cookies_persist_per_partition_and_clear(tmp_path: Path) -> None:
    first = ViewRig(tmp_path)
    first.session.cookies.set_cookie(create_cookie("user_session", "abc", domain="github.com"))
    first.view.load_url(LOGIN)
    first.run()

    second = ViewRig(tmp_path)
    assert [cookie.name for cookie in second.session.cookies] == ["user_session"]

    cleared: list[bool] = []
    second.view.clear_storage_data(lambda: cleared.append(True))
    second.run()

    assert cleared == [True]
    assert len(second.session.cookies) == 0
    assert len(ViewRig(tmp_path).session.cookies) == 0


def test_partition_cookie_path(tmp_path: Path) -> None:
    assert partition_cookie_path(tmp_path, "persist:github") == tmp_path / "github.cookies.txt"
    assert partition_cookie_path(tmp_path, "in-memory") is None
    assert partition_cookie_path(None, "persist:github") is None


def test_closed_view_rejects_navigation(rig: ViewRig) -> None:
    rig.view.close()
    rig.run()

    assert rig.session.closed
    with pytest.raises(ViewError):
        rig.view.load_url(ISSUE)
