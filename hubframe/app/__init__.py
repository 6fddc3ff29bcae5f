"""Flask application factory."""

from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, Response, jsonify
from flask_cors import CORS

from .logging_setup import setup_logging


LOGGER = logging.getLogger(__name__)


def create_app(
    config=None,
    *,
    view_factory=None,
    host_context=None,
    guest_context=None,
    directory=None,
) -> Flask:
    """Build the API around a fully wired frame bridge.

    ``host_context``/``guest_context`` default to fresh :class:`LoopContext`
    threads; tests pass deterministic schedulers instead. The controller is
    initialised on the host context, never on the request thread.
    """

    setup_logging()
    from .api import frame as frame_api
    from .api import history as history_api
    from .config import AppConfig
    from .db import AppStateDB
    from .frame import FrameController, HeadlessView
    from .middleware import request_id as request_id_middleware
    from .services.contexts import LoopContext
    from .services.event_bus import EventBus, Topic
    from .services.history import HistoryRecorder, HistoryStore
    from .services.navigation import NavigationStateStore
    from .services.user_names import UserDirectory

    config = config or AppConfig.from_env()
    config.ensure_dirs()
    config.log_summary()

    app = Flask(__name__)

    CORS(
        app,
        resources={
            r"/api/*": {
                "origins": ["http://localhost:3100", "http://127.0.0.1:3100", "app://renderer"],
            }
        },
        supports_credentials=True,
    )

    state_db = AppStateDB(config.app_state_db_path)
    nav_state = NavigationStateStore(state_db)
    nav_state.ensure_base_url(config.base_url)
    history_store = HistoryStore(state_db)

    bus = EventBus()
    bus.subscribe(Topic.ISSUE_CHANGED, HistoryRecorder(history_store))

    host = host_context or LoopContext("host").start()
    guest = guest_context or LoopContext("guest").start()

    if directory is None:
        directory = UserDirectory(
            config.users_api_url,
            timeout=config.http_timeout,
            user_agent=config.user_agent,
        )

    if view_factory is None:

        def view_factory(partition: str) -> HeadlessView:
            return HeadlessView(
                partition,
                guest=guest,
                host=host,
                partitions_dir=config.partitions_dir,
                timeout=config.http_timeout,
                user_agent=config.user_agent,
                debounce=config.debounce_delay,
            )

    controller = FrameController(
        nav_state,
        bus,
        view_factory,
        host,
        directory=directory,
        base_url=config.base_url,
        partition=config.partition,
        nav_delay=config.nav_delay,
        settle_delay=config.settle_delay,
        coalesce_navigation=config.coalesce_navigation,
    )
    host.call_soon(controller.init)

    app.config.update(
        APP_CONFIG=config,
        APP_STATE_DB=state_db,
        NAV_STATE=nav_state,
        HISTORY_STORE=history_store,
        EVENT_BUS=bus,
        FRAME_CONTROLLER=controller,
        HOST_CONTEXT=host,
        GUEST_CONTEXT=guest,
    )

    app.register_blueprint(history_api.bp)
    app.register_blueprint(frame_api.bp)

    app.before_request(request_id_middleware.before_request)
    app.after_request(request_id_middleware.after_request)

    @app.get("/health")
    def health() -> Response:
        view = controller.view
        return jsonify({"ok": True, "frame_ready": view is not None}), 200

    return app


def shutdown_app(app: Flask) -> None:
    """Stop the frame bridge threads and release the database."""

    controller = app.config.get("FRAME_CONTROLLER")
    if controller is not None:
        controller.shutdown()
        view = controller.view
        close = getattr(view, "close", None)
        if callable(close):
            close()
    for key in ("GUEST_CONTEXT", "HOST_CONTEXT"):
        context: Optional[object] = app.config.get(key)
        stop = getattr(context, "stop", None)
        if callable(stop):
            stop()
    state_db = app.config.get("APP_STATE_DB")
    if state_db is not None:
        state_db.close()


__all__ = ["create_app", "shutdown_app"]
