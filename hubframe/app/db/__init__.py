from __future__ import annotations

from .store import AppStateDB

__all__ = ["AppStateDB"]
