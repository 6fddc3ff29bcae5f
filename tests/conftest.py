"""Ensure the project root is importable and logs stay out of the tree."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="hubframe-logs-"))

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hubframe.app.db import AppStateDB  # noqa: E402


@pytest.fixture()
def state_db(tmp_path: Path):
    db = AppStateDB(tmp_path / "state.sqlite3")
    try:
        yield db
    finally:
        db.close()
