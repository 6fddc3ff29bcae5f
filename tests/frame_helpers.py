from __future__ import annotations

import itertools
from typing import Any, Callable

import requests

from hubframe.app.frame.view import EmbeddedView, ViewEvent
from hubframe.app.services.channel import Message


class ManualHandle:
    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Single-threaded scheduler driven by a virtual clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[ManualHandle] = []
        self._seq = itertools.count()

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> ManualHandle:
        return self._push(self.now, callback, args)

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualHandle:
        return self._push(self.now + max(0.0, delay), callback, args)

    def _push(self, when: float, callback: Callable[..., Any], args: tuple[Any, ...]) -> ManualHandle:
        handle = ManualHandle(when, next(self._seq), callback, args)
        self._queue.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for handle in self._queue if not handle.cancelled)

    def _next_due(self, until: float) -> ManualHandle | None:
        live = [handle for handle in self._queue if not handle.cancelled and handle.when <= until]
        if not live:
            return None
        handle = min(live, key=lambda item: (item.when, item.seq))
        self._queue.remove(handle)
        return handle

    def run_pending(self) -> int:
        """Run everything due at the current virtual time."""

        return self.advance(0.0)

    def advance(self, seconds: float) -> int:
        target = self.now + seconds
        ran = 0
        while True:
            handle = self._next_due(target)
            if handle is None:
                break
            self.now = max(self.now, handle.when)
            handle.callback(*handle.args)
            ran += 1
        self.now = target
        return ran


class FakeView(EmbeddedView):
    """Embedded view that records every call made by the controller."""

    def __init__(self, partition: str) -> None:
        super().__init__(partition)
        self.url = ""
        self.loaded: list[str] = []
        self.actions: list[str] = []
        self.sent: list[tuple[str, tuple[Any, ...]]] = []
        self.devtools = False
        self.storage_cleared = 0

    def load_url(self, url: str) -> None:
        self.loaded.append(url)
        self.url = url

    def go_back(self) -> None:
        self.actions.append("back")

    def go_forward(self) -> None:
        self.actions.append("forward")

    def reload(self) -> None:
        self.actions.append("reload")

    def get_url(self) -> str:
        return self.url

    def is_devtools_opened(self) -> bool:
        return self.devtools

    def open_devtools(self) -> None:
        self.devtools = True

    def close_devtools(self) -> None:
        self.devtools = False

    def send(self, name: str, *args: Any) -> None:
        self.sent.append((name, args))

    def clear_storage_data(self, callback: Callable[[], None] | None = None) -> None:
        self.storage_cleared += 1
        if callback is not None:
            callback()

    def guest_says(self, name: str, *args: Any) -> None:
        """Deliver a guest message the way the channel would (JSON round trip)."""

        wire = Message(name, args).to_wire()
        self._emit(ViewEvent.IPC_MESSAGE, Message.from_wire(wire))

    def fire(self, event: ViewEvent, *args: Any) -> None:
        self._emit(event, *args)

    def sent_names(self) -> list[str]:
        return [name for name, _ in self.sent]


class FakeResponse:
    def __init__(self, url: str, text: str = "", status_code: int = 200, payload: Any = None) -> None:
        self.url = url
        self.text = text
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} for {self.url}")


class FakeSession:
    """Stands in for ``requests.Session``; unknown URLs fail to connect."""

    def __init__(self, pages: dict[str, Any] | None = None) -> None:
        self.pages = dict(pages or {})
        self.headers: dict[str, str] = {}
        self.cookies: Any = None
        self.requests: list[str] = []
        self.closed = False

    def get(self, url: str, **_kwargs: Any) -> FakeResponse:
        self.requests.append(url)
        page = self.pages.get(url)
        if page is None:
            raise requests.ConnectionError(f"cannot reach {url}")
        if isinstance(page, FakeResponse):
            return page
        return FakeResponse(url, text=page)

    def close(self) -> None:
        self.closed = True


ISSUE_HTML = """
<html>
  <head><title>Fix the parser · Issue #42 · acme/widgets</title></head>
  <body class="logged-in env-production">
    <a class="accessibility-aid" href="#start-of-content">Skip to content</a>
    <nav class="js-repo-nav"><a class="reponav-item" href="/acme/widgets">Code</a></nav>
    <div role="main">
      <div id="discussion_bucket">
        <h1><span class="js-issue-title"> Fix the parser </span><span class="gh-header-number">#42</span></h1>
        <div class="timeline">
          <p id="comment">Thanks <a class="user-mention" href="/octocat">@octocat</a> and
             <a class="user-mention" href="/hubot">@hubot</a>, ping <a class="user-mention" href="/octocat">@octocat</a></p>
          <span class="reaction-summary-item tooltipped" aria-label="octocat reacted with thumbs up emoji">+1</span>
        </div>
        <a id="same-host" href="/acme/widgets/issues/7">#7</a>
        <a id="external" href="https://example.org/docs"><span id="external-child">docs</span></a>
        <a id="mail" href="mailto:dev@example.com">mail</a>
        <a id="preview-link" href="/acme/widgets/pull/9"><img id="linked-img" src="/img/shot.png"></a>
        <img id="plain-img" src="https://cdn.example.com/pic.png">
        <pre id="code"><code id="code-line">very long line</code></pre>
        <p id="text">plain text</p>
        <textarea id="reply">hello world</textarea>
      </div>
    </div>
  </body>
</html>
"""

PULL_HTML = """
<html>
  <head><title>Add widgets · Pull Request #9</title></head>
  <body>
    <nav class="js-repo-nav"><a class="reponav-item" href="/acme/widgets">Code</a></nav>
    <div role="main">
      <div id="files_bucket">
        <span class="js-issue-title">Add widgets</span>
        <span class="gh-header-number">#9</span>
        <nav class="tabnav-pr"></nav>
      </div>
    </div>
  </body>
</html>
"""

PLAIN_HTML = """
<html>
  <head><title>Sign in to GitHub</title></head>
  <body><div role="main"><form id="login"></form></div></body>
</html>
"""
