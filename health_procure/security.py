from __future__ import annotations

import threading
import time
from typing import Dict, Tuple

from flask import current_app, request, session

from health_procure.errors import ValidationError


SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    # JSON only; nothing here should ever be rendered or framed.
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

_MAX_TRACKED_WINDOWS = 10_000


class FixedWindowRateLimiter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str, *, limit: int, window_seconds: int) -> Tuple[bool, int]:
        """Count one call for ``key``; returns (allowed, seconds until the window resets)."""
        now = time.monotonic()
        with self._lock:
            opened_at, calls = self._windows.get(key, (now, 0))
            if now - opened_at >= window_seconds:
                opened_at, calls = now, 0
            calls += 1
            self._windows[key] = (opened_at, calls)
            if len(self._windows) > _MAX_TRACKED_WINDOWS:
                self._drop_expired(now, window_seconds)
        return calls <= limit, max(0, int(window_seconds - (now - opened_at)))

    def _drop_expired(self, now: float, window_seconds: int) -> None:
        self._windows = {
            key: window for key, window in self._windows.items() if now - window[0] < window_seconds
        }

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


_LIMITER = FixedWindowRateLimiter()


def _caller_key() -> str:
    # Signed-in officers are limited per user id, anonymous callers per address.
    caller = str(session.get("user_id") or "").strip() or f"ip:{request.remote_addr or 'unknown'}"
    route = request.url_rule.rule if request.url_rule is not None else request.path
    return f"{caller}|{request.method} {route}"


def enforce_rate_limit() -> None:
    config = current_app.config
    if not config.get("RATE_LIMIT_ENABLED", True) or request.method == "OPTIONS":
        return None
    if not request.path.startswith("/api/"):
        return None

    allowed, retry_after = _LIMITER.hit(
        _caller_key(),
        limit=max(1, int(config.get("RATE_LIMIT_MAX_REQUESTS") or 300)),
        window_seconds=max(1, int(config.get("RATE_LIMIT_WINDOW_SECONDS") or 60)),
    )
    if not allowed:
        raise ValidationError(code="rate_limit_exceeded", http_status=429, payload={"retry_after": retry_after})
    return None


def apply_security_headers(response):
    if not current_app.config.get("SECURITY_HEADERS_ENABLED", True):
        return response
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


def reset_rate_limiter_for_tests() -> None:
    _LIMITER.reset()
