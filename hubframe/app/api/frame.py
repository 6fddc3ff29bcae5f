"""Remote control of the embedded frame.

Commands are not executed inline: they are posted onto the host context as
bus events, exactly as the desktop menu would publish them.
"""

from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request

from hubframe.app.frame import FrameController
from hubframe.app.io.protocol import MenuCommand, parse_enum
from hubframe.app.services.contexts import Scheduler
from hubframe.app.services.event_bus import EventBus, Topic
from hubframe.app.services.navigation import NavigationStateStore, describe_state

bp = Blueprint("frame_api", __name__, url_prefix="/api/frame")

_MAX_EVENTS = 256


def _bus() -> EventBus:
    bus = current_app.config.get("EVENT_BUS")
    if not isinstance(bus, EventBus):
        abort(503, "event bus unavailable")
    return bus


def _host() -> Scheduler:
    host = current_app.config.get("HOST_CONTEXT")
    if host is None:
        abort(503, "host context unavailable")
    return host


def _post(topic: str, value: str) -> None:
    _host().call_soon(_bus().publish, topic, value)


@bp.post("/goto")
def goto():
    payload = request.get_json(force=True, silent=True) or {}
    target = payload.get("target") if isinstance(payload, dict) else None
    if not isinstance(target, str) or not target.strip():
        return jsonify({"error": "target_required"}), 400
    _post(Topic.GOTO, target.strip())
    return jsonify({"accepted": True, "target": target.strip()}), 202


@bp.post("/menu")
def menu():
    payload = request.get_json(force=True, silent=True) or {}
    command = payload.get("command") if isinstance(payload, dict) else None
    member = parse_enum(MenuCommand, command)
    if member is None:
        return jsonify({"error": "unknown_command", "allowed": [item.value for item in MenuCommand]}), 400
    _post(Topic.MENU, member.value)
    return jsonify({"accepted": True, "command": member.value}), 202


@bp.get("/state")
def state():
    nav_state = current_app.config.get("NAV_STATE")
    if not isinstance(nav_state, NavigationStateStore):
        abort(503, "navigation state unavailable")
    payload = describe_state(nav_state.snapshot())
    controller = current_app.config.get("FRAME_CONTROLLER")
    view = controller.view if isinstance(controller, FrameController) else None
    payload["view"] = (
        {
            "url": view.get_url(),
            "loading": view.is_loading(),
            "devtools": view.is_devtools_opened(),
            "partition": view.partition,
        }
        if view is not None
        else None
    )
    return jsonify(payload)


@bp.get("/events")
def events():
    limit = request.args.get("limit", type=int) or 50
    limit = max(1, min(limit, _MAX_EVENTS))
    return jsonify({"items": _bus().recent(limit)})


__all__ = ["bp"]
