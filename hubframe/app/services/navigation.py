"""Persisted navigation state of the embedded frame."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from hubframe.app.db import AppStateDB
from hubframe.app.io.models import NavigationState, PageDescriptor

LOGGER = logging.getLogger(__name__)

STATE_URL_KEY = "state.url"
STATE_ISSUE_KEY = "state.issue"
BASE_URL_KEY = "baseUrl"


class NavigationStateStore:
    """Read/write accessors for ``state.url`` and ``state.issue``."""

    def __init__(self, state_db: AppStateDB) -> None:
        self._db = state_db

    @property
    def url(self) -> str:
        value = self._db.get_config(STATE_URL_KEY, "")
        return value if isinstance(value, str) else ""

    @property
    def issue(self) -> PageDescriptor | None:
        payload = self._db.get_config(STATE_ISSUE_KEY, None)
        if not isinstance(payload, Mapping):
            return None
        try:
            return PageDescriptor.model_validate(payload)
        except ValidationError:
            LOGGER.warning("navigation.invalid_issue", extra={"meta": {"issue": dict(payload)}})
            return None

    def snapshot(self) -> NavigationState:
        return NavigationState(url=self.url, issue=self.issue)

    def record_navigation(self, url: str, issue: PageDescriptor | None) -> None:
        self._db.update_config(
            {
                STATE_URL_KEY: url or "",
                STATE_ISSUE_KEY: issue.to_wire() if issue is not None else None,
            }
        )

    def record_url(self, url: str) -> None:
        self._db.set_config(STATE_URL_KEY, url or "")

    def base_url(self, default: str = "") -> str:
        value = self._db.get_config(BASE_URL_KEY, default)
        return value if isinstance(value, str) and value else default

    def ensure_base_url(self, base_url: str) -> str:
        current = self._db.get_config(BASE_URL_KEY, None)
        if isinstance(current, str) and current:
            return current
        self._db.set_config(BASE_URL_KEY, base_url)
        return base_url

    def clear_all(self) -> int:
        """Drop every persisted configuration key, not only navigation state."""

        return self._db.clear_config()


def describe_state(state: NavigationState) -> dict[str, Any]:
    return {
        "url": state.url,
        "issue": state.issue.to_wire() if state.issue is not None else None,
    }


__all__ = [
    "BASE_URL_KEY",
    "NavigationStateStore",
    "STATE_ISSUE_KEY",
    "STATE_URL_KEY",
    "describe_state",
]
