"""Application configuration helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

LOGGER = logging.getLogger(__name__)


REPO_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_BASE_URL = "https://github.com/"
DEFAULT_PARTITION = "persist:github"
DEFAULT_USERS_API = "https://api.github.com"
DEFAULT_USER_AGENT = "hubframe/0.1"

_TRUTHY = {"1", "true", "yes", "on"}


def _resolve_path(value: str | os.PathLike[str] | None, base: Path) -> Path:
    """Resolve ``value`` relative to ``base`` when not absolute."""

    if value is None:
        return base
    candidate = Path(value)
    if candidate.is_absolute():
        return candidate
    return (base / candidate).resolve()


def _guard_directory(path: Path, *, label: str) -> Path:
    """Ensure ``path`` does not resolve to an unsafe location."""

    resolved = path.resolve()
    repo_root = REPO_ROOT.resolve()
    if resolved == repo_root:
        raise ValueError(f"{label} may not be the repository root ({resolved})")
    if resolved == Path(resolved.anchor):
        raise ValueError(f"{label} may not be the filesystem root ({resolved})")
    return path


def _load_overrides(path: str | None) -> Dict[str, Any]:
    """Read the optional YAML settings file named by ``HUBFRAME_CONFIG``."""

    if not path:
        return {}
    candidate = _resolve_path(path, REPO_ROOT)
    if not candidate.exists():
        LOGGER.warning("config file %s does not exist; using environment only", candidate)
        return {}
    with candidate.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"{candidate} must contain a mapping at the top level")
    section = payload.get("hubframe", payload)
    return dict(section) if isinstance(section, Mapping) else {}


class _Settings:
    """Environment first, YAML file second, hard-coded default last."""

    def __init__(self, env: Mapping[str, str], overrides: Mapping[str, Any]) -> None:
        self._env = env
        self._overrides = overrides

    def raw(self, env_key: str, yaml_key: str, default: Any) -> Any:
        value = self._env.get(env_key)
        if value is not None and value != "":
            return value
        if yaml_key in self._overrides and self._overrides[yaml_key] is not None:
            return self._overrides[yaml_key]
        return default

    def text(self, env_key: str, yaml_key: str, default: str) -> str:
        return str(self.raw(env_key, yaml_key, default)).strip() or default

    def seconds_from_ms(self, env_key: str, yaml_key: str, default_ms: int) -> float:
        try:
            value = float(self.raw(env_key, yaml_key, default_ms))
        except (TypeError, ValueError):
            LOGGER.warning("%s is not numeric; falling back to %sms", env_key, default_ms)
            value = float(default_ms)
        return max(0.0, value) / 1000.0

    def number(self, env_key: str, yaml_key: str, default: float) -> float:
        try:
            return float(self.raw(env_key, yaml_key, default))
        except (TypeError, ValueError):
            LOGGER.warning("%s is not numeric; falling back to %s", env_key, default)
            return float(default)

    def flag(self, env_key: str, yaml_key: str, default: bool) -> bool:
        value = self.raw(env_key, yaml_key, default)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUTHY


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration resolved from environment variables."""

    data_dir: Path
    app_state_db_path: Path
    partitions_dir: Path
    base_url: str
    partition: str
    debounce_delay: float
    nav_delay: float
    settle_delay: float
    coalesce_navigation: bool
    users_api_url: str
    http_timeout: float
    user_agent: str

    @property
    def login_url(self) -> str:
        return self.base_url + "login"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "AppConfig":
        env = os.environ if env is None else env
        settings = _Settings(env, _load_overrides(env.get("HUBFRAME_CONFIG")))

        default_data_dir = REPO_ROOT / "data"
        data_dir = _resolve_path(env.get("DATA_DIR"), default_data_dir)
        data_dir = _guard_directory(data_dir, label="DATA_DIR")
        app_state_db_path = _resolve_path(env.get("APP_STATE_DB_PATH"), data_dir / "state.sqlite3")
        _guard_directory(app_state_db_path.parent, label="APP_STATE_DB_PATH parent")
        partitions_dir = _guard_directory(
            _resolve_path(env.get("PARTITIONS_DIR"), data_dir / "partitions"),
            label="PARTITIONS_DIR",
        )

        base_url = settings.text("HUBFRAME_BASE_URL", "base_url", DEFAULT_BASE_URL)
        if not base_url.endswith("/"):
            base_url += "/"

        return cls(
            data_dir=data_dir,
            app_state_db_path=app_state_db_path,
            partitions_dir=partitions_dir,
            base_url=base_url,
            partition=settings.text("HUBFRAME_PARTITION", "partition", DEFAULT_PARTITION),
            debounce_delay=settings.seconds_from_ms("HUBFRAME_DEBOUNCE_MS", "debounce_ms", 200),
            nav_delay=settings.seconds_from_ms("HUBFRAME_NAV_DELAY_MS", "nav_delay_ms", 400),
            settle_delay=settings.seconds_from_ms("HUBFRAME_SETTLE_DELAY_MS", "settle_delay_ms", 100),
            coalesce_navigation=settings.flag("HUBFRAME_COALESCE_NAV", "coalesce_nav", False),
            users_api_url=settings.text("HUBFRAME_USERS_API", "users_api", DEFAULT_USERS_API).rstrip("/"),
            http_timeout=max(0.1, settings.number("HUBFRAME_HTTP_TIMEOUT", "http_timeout", 10.0)),
            user_agent=settings.text("HUBFRAME_USER_AGENT", "user_agent", DEFAULT_USER_AGENT),
        )

    def ensure_dirs(self) -> None:
        """Ensure all required directories exist."""

        for directory in (self.data_dir, self.app_state_db_path.parent, self.partitions_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def log_summary(self) -> None:
        """Log environment-derived flags for observability."""

        payload: Dict[str, Any] = {
            "app_state_db_path": str(self.app_state_db_path),
            "partitions_dir": str(self.partitions_dir),
            "base_url": self.base_url,
            "partition": self.partition,
            "debounce_delay": self.debounce_delay,
            "nav_delay": self.nav_delay,
            "settle_delay": self.settle_delay,
            "coalesce_navigation": self.coalesce_navigation,
            "users_api_url": self.users_api_url,
        }
        LOGGER.info("runtime configuration: %s", json.dumps(payload, sort_keys=True))


__all__ = ["AppConfig", "DEFAULT_BASE_URL", "DEFAULT_PARTITION"]
