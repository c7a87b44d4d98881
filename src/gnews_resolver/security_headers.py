# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""HTTP response headers middleware: hardening headers + CORS for /api/ routes.

Standalone leaf module with zero dependency on server.py.

- Pure ASGI, no BaseHTTPMiddleware.
- Existing app headers are never overwritten.
- CORS headers only on /api/ paths.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)

# ── Header constants ──────────────────────────────────────────────────

_SECURITY_HEADERS: tuple[tuple[bytes, bytes], ...] = (
    (b"x-content-type-options", b"nosniff"),
    (b"x-xss-protection", b"1; mode=block"),
    (b"x-frame-options", b"SAMEORIGIN"),
)

API_PATH_PREFIX = "/api/"

_CORS_ALLOW_METHODS = b"GET,POST,OPTIONS"
_CORS_ALLOW_HEADERS = (
    b"X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
    b"Content-MD5, Content-Type, Date, X-Api-Version"
)

# ── Helpers ────────────────────────────────────────────────────────────


def _request_origin(scope: dict) -> str:
    for name, value in scope.get("headers", []):
        if name.lower() == b"origin":
            return value.decode("latin-1")
    return ""


def _append_missing(headers: list, extra: Iterable[tuple[bytes, bytes]]) -> list:
    existing = frozenset(h[0].lower() for h in headers)
    for name, value in extra:
        if name not in existing:
            headers.append((name, value))
    return headers


# ── ASGI Middleware ────────────────────────────────────────────────────


class SecurityHeadersMiddleware:
    """Inject hardening headers on every ``http.response.start`` message."""

    def __init__(self, app) -> None:
        self.app = app

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        _injected = False

        async def _send_with_security_headers(message) -> None:
            nonlocal _injected
            if message["type"] == "http.response.start" and not _injected:
                _injected = True
                headers = _append_missing(list(message.get("headers", [])), _SECURITY_HEADERS)
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, _send_with_security_headers)


class CorsMiddleware:
    """Add CORS headers to responses under ``/api/``.

    ``allowed_origins`` containing ``"*"`` allows any origin; otherwise the
    request Origin is echoed only when listed.
    """

    def __init__(self, app, *, allowed_origins: Iterable[str] = ("*",)) -> None:
        self.app = app
        self.allowed_origins = frozenset(allowed_origins)
        self.allow_any = "*" in self.allowed_origins

    def _allow_origin_value(self, origin: str) -> bytes | None:
        if self.allow_any:
            return b"*"
        if origin and origin in self.allowed_origins:
            return origin.encode("latin-1")
        return None

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] != "http" or not scope.get("path", "").startswith(API_PATH_PREFIX):
            await self.app(scope, receive, send)
            return

        allow_origin = self._allow_origin_value(_request_origin(scope))
        if allow_origin is None:
            logger.debug("CORS origin not allowed: %s", _request_origin(scope))
            await self.app(scope, receive, send)
            return

        cors_headers: list[tuple[bytes, bytes]] = [
            (b"access-control-allow-credentials", b"true"),
            (b"access-control-allow-origin", allow_origin),
            (b"access-control-allow-methods", _CORS_ALLOW_METHODS),
            (b"access-control-allow-headers", _CORS_ALLOW_HEADERS),
        ]
        if not self.allow_any:
            cors_headers.append((b"vary", b"Origin"))

        _injected = False

        async def _send_with_cors(message) -> None:
            nonlocal _injected
            if message["type"] == "http.response.start" and not _injected:
                _injected = True
                headers = _append_missing(list(message.get("headers", [])), cors_headers)
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, _send_with_cors)
