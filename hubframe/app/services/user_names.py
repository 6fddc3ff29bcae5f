"""Resolve user logins to display names for mention rewriting."""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable
from urllib.parse import quote

import requests

LOGGER = logging.getLogger(__name__)


class UserDirectory:
    """Looks up display names through the users REST API and caches them.

    Only successful lookups are cached; a login whose lookup failed is retried
    on the next request.
    """

    def __init__(
        self,
        api_url: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 10.0,
        user_agent: str | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout
        self._headers = {"Accept": "application/json"}
        if user_agent:
            self._headers["User-Agent"] = user_agent
        self._cache: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()

    def lookup(self, logins: Iterable[str]) -> dict[str, dict[str, str]]:
        """Return ``login -> {"name": display name}`` for every resolvable login."""

        resolved: dict[str, dict[str, str]] = {}
        for login in logins:
            if not isinstance(login, str) or not login.strip():
                continue
            key = login.strip()
            with self._lock:
                cached = self._cache.get(key)
            if cached is None:
                cached = self._fetch(key)
                if cached is None:
                    continue
                with self._lock:
                    self._cache[key] = cached
            resolved[key] = dict(cached)
        return resolved

    def remember(self, login: str, name: str) -> None:
        with self._lock:
            self._cache[login] = {"name": name}

    def _fetch(self, login: str) -> dict[str, str] | None:
        url = f"{self._api_url}/users/{quote(login, safe='')}"
        try:
            response = self._session.get(url, headers=self._headers, timeout=self._timeout)
            response.raise_for_status()
            payload: Any = response.json()
        except (requests.RequestException, ValueError) as exc:
            LOGGER.warning("user_directory.lookup_failed", extra={"meta": {"login": login, "error": str(exc)}})
            return None
        name = payload.get("name") if isinstance(payload, dict) else None
        if not isinstance(name, str) or not name.strip():
            return None
        return {"name": name.strip()}


__all__ = ["UserDirectory"]
