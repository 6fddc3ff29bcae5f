"""Request middleware that assigns per-request trace identifiers."""

from __future__ import annotations

import time

from flask import Response, g, request

from hubframe.app.logging_setup import get_request_logger, new_request_id


_REQUEST_LOGGER = get_request_logger()


def before_request() -> None:
    """Attach a trace identifier to ``flask.g`` for downstream logging."""

    trace_id = getattr(g, "trace_id", None)
    if not trace_id:
        trace_id = (
            request.headers.get("X-Correlation-Id")
            or request.headers.get("X-Request-Id")
            or new_request_id()
        )
    g.trace_id = trace_id
    g._request_perf_start = time.perf_counter()


def after_request(response: Response) -> Response:
    """Emit a one-line summary and echo the trace header back."""

    start = getattr(g, "_request_perf_start", None)
    duration_ms = int((time.perf_counter() - start) * 1000) if isinstance(start, float) else -1
    trace_id: str | None = getattr(g, "trace_id", None)

    _REQUEST_LOGGER.info(
        "HTTP %s %s -> %s (%sms)",
        request.method,
        request.path,
        response.status_code,
        duration_ms,
        extra={
            "correlation_id": trace_id,
            "event": "http.request",
            "meta": {
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.headers.get("X-Forwarded-For") or request.remote_addr,
            },
        },
    )

    if trace_id:
        response.headers.setdefault("X-Request-Id", trace_id)
    return response


__all__ = ["after_request", "before_request"]
