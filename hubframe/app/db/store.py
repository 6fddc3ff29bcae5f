"""High level helpers for the application state database."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Mapping

from .schema import connect, migrate


LOGGER = logging.getLogger(__name__)

_HISTORY_COLUMNS = "id, url, name, timestamp, number, repo_path, kind, visited"


def _serialize(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, sort_keys=True)


def _deserialize(payload: str | bytes | None, default: Any) -> Any:
    if not payload:
        return default
    try:
        return json.loads(payload)
    except (TypeError, json.JSONDecodeError):
        return default


class AppStateDB:
    """Thin wrapper around SQLite providing typed helpers."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = connect(path)
        LOGGER.info("Running state DB migrations", extra={"db_path": str(self.path)})
        migrate(self._conn)
        LOGGER.info("State DB migrations finished", extra={"db_path": str(self.path)})
        self._lock = threading.RLock()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------
    def config_snapshot(self) -> dict[str, Any]:
        with self._lock, self._conn:
            rows = list(self._conn.execute("SELECT k, v FROM app_config"))
        snapshot: dict[str, Any] = {}
        for row in rows:
            key = str(row["k"]) if row["k"] is not None else ""
            if not key:
                continue
            snapshot[key] = _deserialize(row["v"], None)
        return snapshot

    def get_config(self, key: str, default: Any = None) -> Any:
        if not key:
            return default
        with self._lock, self._conn:
            row = self._conn.execute(
                "SELECT v FROM app_config WHERE k=?",
                (key,),
            ).fetchone()
        payload = row["v"] if row is not None else None
        return _deserialize(payload, default)

    def set_config(self, key: str, value: Any) -> None:
        if not key:
            raise ValueError("config key required")
        serialized = _serialize(value)
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO app_config(k, v) VALUES(?, ?)
                ON CONFLICT(k) DO UPDATE SET
                  v = excluded.v,
                  updated_at = strftime('%Y-%m-%dT%H:%M:%fZ','now')
                """,
                (key, serialized),
            )

    def update_config(self, values: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(values, Mapping):
            raise TypeError("values must be a mapping")
        with self._lock, self._conn:
            for key, value in values.items():
                normalized_key = str(key or "").strip()
                if not normalized_key:
                    continue
                self._conn.execute(
                    "INSERT INTO app_config(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v",
                    (normalized_key, _serialize(value)),
                )
        return self.config_snapshot()

    def clear_config(self) -> int:
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM app_config")
        return int(cursor.rowcount or 0)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def upsert_history(
        self,
        *,
        url: str,
        name: str,
        timestamp: float,
        number: str | None = None,
        repo_path: str | None = None,
        kind: str = "page",
        visited: float | None = None,
    ) -> int:
        """Insert or fully replace the history row keyed by ``url``."""

        if not url:
            raise ValueError("history url is required")
        visited_at = time.time() if visited is None else visited
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO history(url, name, timestamp, number, repo_path, kind, visited)
                VALUES(?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(url) DO UPDATE SET
                    name = excluded.name,
                    timestamp = excluded.timestamp,
                    number = excluded.number,
                    repo_path = excluded.repo_path,
                    kind = excluded.kind,
                    visited = excluded.visited
                """,
                (url, name, timestamp, number, repo_path, kind, visited_at),
            )
            row = self._conn.execute(
                "SELECT id FROM history WHERE url=?",
                (url,),
            ).fetchone()
        return int(row["id"])

    def list_history(self) -> list[dict[str, Any]]:
        with self._lock, self._conn:
            rows = self._conn.execute(
                f"SELECT {_HISTORY_COLUMNS} FROM history ORDER BY id DESC"
            ).fetchall()
        return [dict(row) for row in rows]

    def get_history(self, history_id: int) -> dict[str, Any] | None:
        with self._lock, self._conn:
            row = self._conn.execute(
                f"SELECT {_HISTORY_COLUMNS} FROM history WHERE id=?",
                (history_id,),
            ).fetchone()
        return dict(row) if row is not None else None

    def search_history(self, tokens: Sequence[str]) -> list[dict[str, Any]]:
        """Return rows whose number or name contains every token.

        Matching is case-insensitive and order-independent; each field is
        tested on its own, so all tokens must land in the same field.
        """

        folded = [token.casefold() for token in tokens if token]
        sql = [f"SELECT {_HISTORY_COLUMNS} FROM history"]
        params: list[Any] = []
        if folded:
            per_field: list[str] = []
            for column in ("COALESCE(number, '')", "name"):
                clause = " AND ".join(
                    f"instr(py_casefold({column}), ?) > 0" for _ in folded
                )
                per_field.append(f"({clause})")
                params.extend(folded)
            sql.append("WHERE " + " OR ".join(per_field))
        sql.append("ORDER BY visited DESC, id DESC")
        with self._lock, self._conn:
            rows = self._conn.execute(" ".join(sql), params).fetchall()
        return [dict(row) for row in rows]


__all__ = ["AppStateDB"]
