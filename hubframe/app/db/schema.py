"""SQLite schema management for the application state database."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable


LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[sqlite3.Connection], None]


def _casefold(value: object) -> object:
    if isinstance(value, str):
        return value.casefold()
    return value


def connect(db_path: Path | str) -> sqlite3.Connection:
    """Return a SQLite connection with conservative defaults."""

    connection = sqlite3.connect(str(db_path), check_same_thread=False)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA journal_mode=WAL;")
    connection.execute("PRAGMA foreign_keys=ON;")
    connection.execute("PRAGMA synchronous=NORMAL;")
    # SQLite's lower() only folds ASCII; history search needs full case folding.
    connection.create_function("py_casefold", 1, _casefold, deterministic=True)
    return connection


def migrate(connection: sqlite3.Connection) -> None:
    """Apply all known migrations in a re-entrant, idempotent fashion."""

    LOGGER.debug("Ensuring migration ledger")
    _ensure_ledger(connection)

    for migration_id, migration_fn in _MIGRATIONS:
        if _already_applied(connection, migration_id):
            continue
        LOGGER.info("Applying migration %s", migration_id)
        try:
            migration_fn(connection)
            with connection:
                _mark_applied(connection, migration_id)
        except Exception:  # noqa: BLE001 - surface precise failure context to logs
            LOGGER.exception(
                "Migration %s failed. Inspect the _migrations ledger for partial state.",
                migration_id,
            )
            raise
        LOGGER.info("Applied migration %s", migration_id)


def _ensure_ledger(connection: sqlite3.Connection) -> None:
    with connection:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS _migrations (
                id TEXT PRIMARY KEY,
                applied_at TEXT NOT NULL
            )
            """
        )


def _already_applied(connection: sqlite3.Connection, migration_id: str) -> bool:
    row = connection.execute(
        "SELECT 1 FROM _migrations WHERE id=?",
        (migration_id,),
    ).fetchone()
    return row is not None


def _mark_applied(connection: sqlite3.Connection, migration_id: str) -> None:
    connection.execute(
        "INSERT OR REPLACE INTO _migrations(id, applied_at) VALUES(?, ?)",
        (migration_id, datetime.now(tz=timezone.utc).isoformat(timespec="seconds")),
    )


def _table_exists(connection: sqlite3.Connection, table: str) -> bool:
    row = connection.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?",
        (table,),
    ).fetchone()
    return row is not None


def _column_exists(connection: sqlite3.Connection, table: str, column: str) -> bool:
    return any(
        row[1] == column for row in connection.execute(f"PRAGMA table_info({table})")
    )


def _index_exists(connection: sqlite3.Connection, table: str, name: str) -> bool:
    if not _table_exists(connection, table):
        return False
    return any(
        row[1] == name for row in connection.execute(f"PRAGMA index_list({table})")
    )


def _migration_001_app_config(connection: sqlite3.Connection) -> None:
    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS app_config (
            k TEXT PRIMARY KEY,
            v TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
        );
        """
    )


def _migration_002_history(connection: sqlite3.Connection) -> None:
    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            url TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL DEFAULT '',
            timestamp REAL NOT NULL,
            number TEXT,
            repo_path TEXT,
            kind TEXT NOT NULL DEFAULT 'page'
                CHECK(kind IN ('page','issue','pull-request'))
        );
        """
    )


def _migration_003_history_visited(connection: sqlite3.Connection) -> None:
    table = "history"
    with connection:
        if not _column_exists(connection, table, "visited"):
            connection.execute(f"ALTER TABLE {table} ADD COLUMN visited REAL")
        connection.execute(
            "UPDATE history SET visited = COALESCE(visited, timestamp) WHERE visited IS NULL"
        )
        if not _index_exists(connection, table, "idx_history_visited"):
            connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_history_visited ON history(visited DESC)"
            )


_MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("001_app_config", _migration_001_app_config),
    ("002_history", _migration_002_history),
    ("003_history_visited", _migration_003_history_visited),
]

MIGRATION_IDS = tuple(migration_id for migration_id, _ in _MIGRATIONS)


__all__ = ["MIGRATION_IDS", "connect", "migrate"]
