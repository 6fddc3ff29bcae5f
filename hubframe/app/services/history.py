"""Local history of pages shown in the embedded frame."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Mapping

from pydantic import ValidationError

from hubframe.app.db import AppStateDB
from hubframe.app.io.models import HistoryRecord, PageDescriptor

LOGGER = logging.getLogger(__name__)


class HistoryStorageError(RuntimeError):
    """Raised when the underlying database rejects a history operation."""


class HistoryStore:
    """Upsert-by-URL log of visited pages with token search.

    Every public call is a single statement against :class:`AppStateDB`, so a
    failed ``add`` leaves nothing behind. Faults are raised to the caller as
    :class:`HistoryStorageError`; retry policy belongs to the caller.
    """

    def __init__(self, state_db: AppStateDB) -> None:
        self._db = state_db

    def add(self, record: HistoryRecord | Mapping[str, Any]) -> int:
        try:
            item = HistoryRecord.model_validate(record)
        except ValidationError as exc:
            raise ValueError(f"invalid history record: {exc}") from exc
        if not item.url:
            raise ValueError("history url is required")
        try:
            return self._db.upsert_history(
                url=item.url,
                name=item.name,
                timestamp=item.timestamp,
                number=item.number,
                repo_path=item.repo_path,
                kind=item.kind.value,
                visited=item.visited,
            )
        except sqlite3.Error as exc:
            raise HistoryStorageError(f"history add failed: {exc}") from exc

    def get(self) -> list[dict[str, Any]]:
        try:
            return self._db.list_history()
        except sqlite3.Error as exc:
            raise HistoryStorageError(f"history list failed: {exc}") from exc

    def get_by_id(self, record_id: int | str) -> dict[str, Any] | None:
        try:
            key = int(record_id)
        except (TypeError, ValueError):
            return None
        try:
            return self._db.get_history(key)
        except sqlite3.Error as exc:
            raise HistoryStorageError(f"history lookup failed: {exc}") from exc

    def find(self, text: str | None) -> list[dict[str, Any]]:
        tokens = str(text or "").split()
        try:
            return self._db.search_history(tokens)
        except sqlite3.Error as exc:
            raise HistoryStorageError(f"history search failed: {exc}") from exc


class HistoryRecorder:
    """Event bus subscriber that records every confirmed page change."""

    def __init__(self, store: HistoryStore) -> None:
        self._store = store

    def __call__(self, issue: PageDescriptor | Mapping[str, Any] | None) -> None:
        if issue is None:
            return
        descriptor = PageDescriptor.model_validate(issue)
        if not descriptor.url:
            return
        try:
            self._store.add(HistoryRecord.from_descriptor(descriptor))
        except HistoryStorageError:
            LOGGER.exception("history.record_failed", extra={"meta": {"url": descriptor.url}})


__all__ = ["HistoryRecorder", "HistoryStorageError", "HistoryStore"]
