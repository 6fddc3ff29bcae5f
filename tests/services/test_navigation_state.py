from __future__ import annotations

from hubframe.app.io.models import PageDescriptor
from hubframe.app.services.navigation import BASE_URL_KEY, NavigationStateStore, describe_state


def test_record_navigation_round_trips(state_db) -> None:
    store = NavigationStateStore(state_db)
    issue = PageDescriptor(
        url="https://github.com/a/b/issues/3", name="Bug", id="3", repo_path="a/b", kind="issue"
    )

    store.record_navigation(issue.url, issue)

    state = NavigationStateStore(state_db).snapshot()
    assert state.url == issue.url
    assert state.issue == issue
    assert describe_state(state)["issue"]["repoPath"] == "a/b"


def test_record_url_keeps_issue(state_db) -> None:
    store = NavigationStateStore(state_db)
    store.record_navigation("https://github.com/login", PageDescriptor(url="https://github.com/login", name="Sign in"))

    store.record_url("https://github.com/login#top")

    assert store.url == "https://github.com/login#top"
    assert store.issue is not None and store.issue.name == "Sign in"


def test_state_survives_reopening(tmp_path) -> None:
    from hubframe.app.db import AppStateDB

    first = AppStateDB(tmp_path / "state.sqlite3")
    NavigationStateStore(first).record_url("https://github.com/x")
    first.close()

    second = AppStateDB(tmp_path / "state.sqlite3")
    try:
        assert NavigationStateStore(second).url == "https://github.com/x"
    finally:
        second.close()


def test_invalid_persisted_issue_reads_as_none(state_db) -> None:
    state_db.set_config("state.issue", {"url": "x", "id": "1", "kind": "page"})

    assert NavigationStateStore(state_db).issue is None


def test_base_url_seeded_once_and_cleared(state_db) -> None:
    store = NavigationStateStore(state_db)

    assert store.ensure_base_url("https://github.com/") == "https://github.com/"
    assert store.ensure_base_url("https://other.example/") == "https://github.com/"
    assert state_db.get_config(BASE_URL_KEY) == "https://github.com/"

    store.clear_all()

    assert store.base_url("fallback/") == "fallback/"
    assert store.url == ""
