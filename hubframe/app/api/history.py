"""History persistence API."""

from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request

from hubframe.app.services.history import HistoryStorageError, HistoryStore

bp = Blueprint("history_api", __name__, url_prefix="/api/history")


def _store() -> HistoryStore:
    store = current_app.config.get("HISTORY_STORE")
    if not isinstance(store, HistoryStore):
        abort(503, "history store unavailable")
    return store


def _storage_failure(exc: HistoryStorageError):
    current_app.logger.exception("history.storage_failed")
    return jsonify({"error": "storage_unavailable", "detail": str(exc)}), 503


@bp.get("")
def list_history():
    store = _store()
    query = request.args.get("q")
    try:
        items = store.find(query) if query is not None else store.get()
    except HistoryStorageError as exc:
        return _storage_failure(exc)
    return jsonify({"items": items})


@bp.get("/<int:record_id>")
def get_history(record_id: int):
    try:
        item = _store().get_by_id(record_id)
    except HistoryStorageError as exc:
        return _storage_failure(exc)
    return jsonify({"item": item})


@bp.post("")
def add_history():
    payload = request.get_json(force=True, silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "object_required"}), 400
    url = str(payload.get("url") or "").strip()
    if not url:
        return jsonify({"error": "url_required"}), 400
    try:
        record_id = _store().add(payload)
    except ValueError as exc:
        return jsonify({"error": "invalid_record", "detail": str(exc)}), 400
    except HistoryStorageError as exc:
        return _storage_failure(exc)
    return jsonify({"id": record_id, "url": url.partition("#")[0]}), 201


__all__ = ["bp"]
