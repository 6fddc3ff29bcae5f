from __future__ import annotations

import sqlite3

import pytest

from hubframe.app.io.models import HistoryRecord, PageDescriptor, PageKind
from hubframe.app.services.history import HistoryRecorder, HistoryStorageError, HistoryStore


@pytest.fixture()
def store(state_db) -> HistoryStore:
    return HistoryStore(state_db)


def test_add_strips_fragment(store: HistoryStore) -> None:
    record_id = store.add({"url": "https://github.com/a/b/issues/1#issuecomment-9", "name": "x"})

    item = store.get_by_id(record_id)

    assert item is not None
    assert item["url"] == "https://github.com/a/b/issues/1"


def test_upsert_by_url_keeps_single_row_with_latest_name(store: HistoryStore) -> None:
    first = store.add({"url": "https://github.com/a/b/issues/1", "name": "old title"})
    second = store.add({"url": "https://github.com/a/b/issues/1#top", "name": "new title"})

    rows = store.get()

    assert first == second
    assert len(rows) == 1
    assert rows[0]["name"] == "new title"


def test_add_requires_url(store: HistoryStore) -> None:
    with pytest.raises(ValueError):
        store.add({"name": "nameless"})
    with pytest.raises(ValueError):
        store.add({"url": "#only-fragment", "name": "x"})
    assert store.get() == []


def test_get_returns_most_recently_inserted_first(store: HistoryStore) -> None:
    for index in range(3):
        store.add({"url": f"https://github.com/p/{index}", "name": f"page {index}"})

    assert [row["name"] for row in store.get()] == ["page 2", "page 1", "page 0"]


def test_get_by_id_missing_is_none(store: HistoryStore) -> None:
    assert store.get_by_id(999) is None
    assert store.get_by_id("not-a-number") is None


def test_find_empty_query_matches_everything(store: HistoryStore) -> None:
    store.add({"url": "https://github.com/1", "name": "one"})
    store.add({"url": "https://github.com/2", "name": "two"})

    assert len(store.find("")) == 2
    assert len(store.find("   ")) == 2
    assert len(store.find(None)) == 2


def test_find_requires_all_tokens_in_any_order(store: HistoryStore) -> None:
    store.add({"url": "https://github.com/1", "name": "bar is foo"})
    store.add({"url": "https://github.com/2", "name": "foo only"})

    names = [row["name"] for row in store.find("foo bar")]

    assert names == ["bar is foo"]


def test_find_is_case_insensitive(store: HistoryStore) -> None:
    store.add({"url": "https://github.com/1", "name": "Crash In PARSER"})

    assert [row["name"] for row in store.find("parser crash")] == ["Crash In PARSER"]


def test_find_matches_issue_number(store: HistoryStore) -> None:
    descriptor = PageDescriptor(
        url="https://github.com/acme/widgets/issues/4242",
        name="Widget explodes",
        id="4242",
        repo_path="acme/widgets",
        kind=PageKind.ISSUE,
    )
    store.add(HistoryRecord.from_descriptor(descriptor))
    store.add({"url": "https://github.com/other", "name": "Unrelated"})

    assert [row["number"] for row in store.find("424")] == ["4242"]


def test_find_orders_by_visited_descending(store: HistoryStore) -> None:
    store.add({"url": "https://github.com/old", "name": "release notes", "visited": 10.0})
    store.add({"url": "https://github.com/new", "name": "release plan", "visited": 30.0})
    store.add({"url": "https://github.com/mid", "name": "release blockers", "visited": 20.0})

    names = [row["name"] for row in store.find("release")]

    assert names == ["release plan", "release blockers", "release notes"]


def test_storage_faults_raise_history_storage_error(state_db) -> None:
    store = HistoryStore(state_db)
    state_db.close()

    with pytest.raises(HistoryStorageError):
        store.add({"url": "https://github.com/x", "name": "x"})
    with pytest.raises(HistoryStorageError):
        store.get()


def test_failed_add_leaves_no_partial_row(store: HistoryStore, monkeypatch: pytest.MonkeyPatch) -> None:
    store.add({"url": "https://github.com/kept", "name": "kept"})

    def _broken(**_kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store._db, "upsert_history", _broken)
    with pytest.raises(HistoryStorageError):
        store.add({"url": "https://github.com/lost", "name": "lost"})
    monkeypatch.undo()

    assert [row["url"] for row in store.get()] == ["https://github.com/kept"]


def test_recorder_adds_descriptor_and_skips_empty_urls(store: HistoryStore) -> None:
    recorder = HistoryRecorder(store)

    recorder(None)
    recorder({"url": "", "name": "network error", "kind": "page"})
    recorder(
        {
            "url": "https://github.com/acme/widgets/pull/9#diff",
            "name": "Add widgets",
            "id": "9",
            "repoPath": "acme/widgets",
            "kind": "pull-request",
        }
    )

    rows = store.get()
    assert len(rows) == 1
    assert rows[0]["url"] == "https://github.com/acme/widgets/pull/9"
    assert rows[0]["kind"] == "pull-request"
    assert rows[0]["repo_path"] == "acme/widgets"


def test_recorder_logs_storage_faults(state_db, caplog: pytest.LogCaptureFixture) -> None:
    recorder = HistoryRecorder(HistoryStore(state_db))
    state_db.close()

    recorder(PageDescriptor(url="https://github.com/x", name="x"))

    assert any(record.getMessage() == "history.record_failed" for record in caplog.records)
