"""Structured logging and in-process counters.

Every log line is one JSON object carrying the request id of the HTTP call
that produced it (taken from ``X-Request-Id`` or generated). Code running
outside a request, such as CLI commands, binds an id with
``bind_request_id``. Counters are exposed on ``/health`` and reset per
process.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, Tuple

from flask import g, has_request_context, request


_LOG_REQUEST_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar("log_request_id", default="")

# Attributes every LogRecord has; anything else was passed through ``extra``.
_RECORD_ATTRIBUTES = frozenset(logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


def set_log_request_id(request_id: str | None) -> None:
    _LOG_REQUEST_ID_CTX.set(str(request_id or "").strip())


@contextlib.contextmanager
def bind_request_id(request_id: str | None):
    token = _LOG_REQUEST_ID_CTX.set(str(request_id or "").strip() or "n/a")
    try:
        yield _LOG_REQUEST_ID_CTX.get()
    finally:
        _LOG_REQUEST_ID_CTX.reset(token)


def current_request_id(default: str | None = None) -> str:
    if has_request_context():
        request_id = str(getattr(g, "request_id", "") or "").strip()
        if request_id:
            return request_id
    return _LOG_REQUEST_ID_CTX.get() or default or "n/a"


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": current_request_id(default=getattr(record, "request_id", None)),
        }
        if has_request_context():
            payload["method"] = request.method
            payload["path"] = request.path

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRIBUTES or key.startswith("_") or key in payload:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"), default=str)


def configure_json_logging(app) -> None:
    if not bool(app.config.get("LOG_JSON", True)):
        return
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).strip().upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    app.logger.handlers = []
    app.logger.propagate = True


def ensure_request_id() -> str:
    request_id = str(getattr(g, "request_id", "") or "").strip()
    if not request_id:
        request_id = str(request.headers.get("X-Request-Id") or "").strip() or uuid.uuid4().hex
        g.request_id = request_id
    set_log_request_id(request_id)
    return request_id


class WorkflowMetrics:
    """HTTP traffic per route plus procurement status transitions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._routes: Dict[str, Dict[str, float]] = {}
        self._events: Dict[str, int] = {}
        self._transitions: Dict[Tuple[str, str], int] = {}

    def observe_http(self, method: str, route: str, status_code: int, duration_ms: float) -> None:
        key = f"{(method or 'GET').upper()} {route or 'unknown'}"
        duration_ms = max(0.0, float(duration_ms))
        with self._lock:
            stats = self._routes.setdefault(key, {"requests": 0, "errors": 0, "latency_sum_ms": 0.0, "latency_max_ms": 0.0})
            stats["requests"] += 1
            if int(status_code) >= 400:
                stats["errors"] += 1
            stats["latency_sum_ms"] += duration_ms
            stats["latency_max_ms"] = max(stats["latency_max_ms"], duration_ms)

    def observe_workflow_event(self, event_type: str, from_status: str | None = None, to_status: str | None = None) -> None:
        with self._lock:
            self._events[event_type] = self._events.get(event_type, 0) + 1
            if to_status:
                edge = (from_status or "new", to_status)
                self._transitions[edge] = self._transitions.get(edge, 0) + 1

    def snapshot(self) -> dict:
        with self._lock:
            routes = [
                {
                    "route": route,
                    "requests": int(stats["requests"]),
                    "errors": int(stats["errors"]),
                    "avg_latency_ms": round(stats["latency_sum_ms"] / stats["requests"], 2),
                    "max_latency_ms": round(stats["latency_max_ms"], 2),
                }
                for route, stats in self._routes.items()
            ]
            routes.sort(key=lambda item: item["requests"], reverse=True)
            return {
                "requests_total": sum(item["requests"] for item in routes),
                "errors_total": sum(item["errors"] for item in routes),
                "by_route": routes,
                "workflow_events": {
                    "total": sum(self._events.values()),
                    "by_type": dict(sorted(self._events.items())),
                    "transitions": [
                        {"from": edge[0], "to": edge[1], "count": count}
                        for edge, count in sorted(self._transitions.items())
                    ],
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._routes.clear()
            self._events.clear()
            self._transitions.clear()


_METRICS = WorkflowMetrics()


def mark_request_start() -> None:
    g._request_started_at = time.perf_counter()


def observe_response(response):
    started = getattr(g, "_request_started_at", None)
    elapsed_ms = (time.perf_counter() - started) * 1000.0 if started else 0.0
    route = request.url_rule.rule if request.url_rule is not None else request.path
    _METRICS.observe_http(request.method, route, response.status_code, elapsed_ms)
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
    return response


def observe_workflow_event(event_type: str, from_status: str | None = None, to_status: str | None = None) -> None:
    _METRICS.observe_workflow_event(event_type, from_status, to_status)


def metrics_snapshot() -> dict:
    return _METRICS.snapshot()


def reset_metrics_for_tests() -> None:
    _METRICS.reset()
    set_log_request_id(None)
