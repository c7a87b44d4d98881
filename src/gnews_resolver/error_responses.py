# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Client-facing error bodies: ``{"error": str}`` with 400 / 404 / 500.

Maps ResolutionResult statuses and exceptions to a status code and a safe
message.  Near-leaf module (stdlib + package types + starlette lazy) so the
CLI, the HTTP routes and the MCP tool share one mapping.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from . import ResolutionResult, ResolutionStatus

MAX_DETAIL_LENGTH = 200

MISSING_URL_MESSAGE = "Missing or invalid URL in request body"
NON_GOOGLE_NEWS_MESSAGE = "URL must be from news.google.com"
NOT_FOUND_MESSAGE = "Unable to extract target URL from Google News article"

# ── Secret sanitization patterns ─────────────────────────────────────

_SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"token=[^&\s]+", re.IGNORECASE), "token=<redacted>"),
    (re.compile(r"Bearer\s+\S+"), "Bearer <redacted>"),
    (
        re.compile(
            r"(?:API_KEY|SECRET|TOKEN|PASSWORD|CREDENTIAL)\s*[=:]\s*\S+",
            re.IGNORECASE,
        ),
        "<redacted>",
    ),
    (re.compile(r"://[^@\s/]+@"), "://<redacted>@"),
]

_PATH_PATTERN = re.compile(
    r"(/(?:Users|home|tmp|var|etc|opt|root|srv|proc|usr|Library|private|snap|mnt|nix)/[\w./-]+"
    r"|[A-Z]:\\[\w.\\-]+)"
)

# ── Chromium net::ERR_* classification ───────────────────────────────

_NET_ERR_RE = re.compile(r"net::ERR_(\w+)")
_HOSTNAME_RE = re.compile(r"https?://([^/:\s]+)")

_NET_ERR_MESSAGES: dict[str, str] = {
    "NAME_NOT_RESOLVED": "Could not resolve domain name",
    "CONNECTION_TIMED_OUT": "Connection timed out",
    "CONNECTION_REFUSED": "Connection refused",
    "CONNECTION_CLOSED": "Connection closed",
    "CONNECTION_RESET": "Connection reset",
    "INTERNET_DISCONNECTED": "No network connection",
}

_CLI_HINTS: dict[int, str] = {
    400: "Pass a full https://news.google.com/... article link.",
    404: "The page exposed no usable article link. Try again, or open it in a browser.",
    500: "Ensure Chromium is installed (playwright install chromium) or check --ws-endpoint.",
}


def sanitize_detail(text: str) -> str:
    """Scrub secrets and filesystem paths from *text* and cap its length."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    text = _PATH_PATTERN.sub("<path>", text)
    if len(text) > MAX_DETAIL_LENGTH:
        text = text[:MAX_DETAIL_LENGTH] + "..."
    return text


def classify_network_error(exc_message: str) -> str | None:
    """Human message for a Playwright ``net::ERR_*`` error, or None."""
    m = _NET_ERR_RE.search(exc_message)
    if m is None:
        return None
    code = m.group(1)
    hm = _HOSTNAME_RE.search(exc_message)
    host_part = f" ({hm.group(1)})" if hm else ""
    base = _NET_ERR_MESSAGES.get(code)
    if base is None:
        if "CERT" in code or "SSL" in code:
            base = "SSL/TLS error"
        else:
            base = f"Navigation failed (net::ERR_{code})"
    return base + host_part


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    """Status code + message pair rendered as ``{"error": message}``."""

    status: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error}

    def to_response(self):
        """Starlette ``JSONResponse`` (never cached)."""
        from starlette.responses import JSONResponse

        return JSONResponse(
            content=self.to_dict(),
            status_code=self.status,
            headers={"Cache-Control": "no-store"},
        )

    def to_cli_text(self) -> str:
        lines = [f"Error: {self.error}"]
        hint = _CLI_HINTS.get(self.status, "")
        if hint:
            lines.append(f"Hint: {hint}")
        return "\n".join(lines)


def success_payload(result: ResolutionResult) -> dict[str, str]:
    return {"extractedUrl": result.url or ""}


def from_result(result: ResolutionResult) -> ErrorResponse | None:
    """Error body for a non-success result, None for success."""
    if result.status is ResolutionStatus.SUCCESS:
        return None
    if result.status is ResolutionStatus.INVALID:
        return ErrorResponse(status=400, error=f"{NON_GOOGLE_NEWS_MESSAGE} ({result.reason})")
    return ErrorResponse(status=404, error=NOT_FOUND_MESSAGE)


def missing_url() -> ErrorResponse:
    return ErrorResponse(status=400, error=MISSING_URL_MESSAGE)


def from_exception(exc: BaseException) -> ErrorResponse:
    """Map an exception to a client error without leaking internals."""
    from .errors import BrowserLaunchError, InvalidInputError

    if isinstance(exc, InvalidInputError):
        return ErrorResponse(status=400, error=sanitize_detail(str(exc)))

    if isinstance(exc, BrowserLaunchError):
        return ErrorResponse(
            status=500,
            error=sanitize_detail(f"Browser unavailable after {exc.attempts} attempt(s): {exc}"),
        )

    net_message = classify_network_error(str(exc))
    if net_message is not None:
        return ErrorResponse(status=500, error=f"Failed to extract target URL: {sanitize_detail(net_message)}")

    detail = str(exc) or "Unknown error"
    return ErrorResponse(status=500, error=f"Failed to extract target URL: {sanitize_detail(detail)}")
