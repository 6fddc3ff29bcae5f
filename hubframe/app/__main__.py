"""Command line entry-point for running the Flask API."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from . import create_app, shutdown_app

LOGGER = logging.getLogger(__name__)


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def main() -> None:
    """Create and run the Flask development server."""
    load_dotenv()

    app = create_app()

    host = os.getenv("BACKEND_HOST", "127.0.0.1")
    port = int(os.getenv("BACKEND_PORT", "5050"))
    reload_enabled = _env_flag("BACKEND_RELOAD")

    LOGGER.info("Starting hubframe API on %s:%s (reload=%s)", host, port, reload_enabled)
    try:
        app.run(host=host, port=port, debug=reload_enabled, use_reloader=reload_enabled)
    finally:
        shutdown_app(app)


if __name__ == "__main__":  # pragma: no cover - script entry point
    main()
