# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Input validation for resolution requests.

Runs before any browser work.  Only absolute http(s) URLs that contain
``news.google.com`` are accepted.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from .errors import INVALID_URL_REASON, InvalidInputError

GOOGLE_NEWS_MARKER = "news.google.com"
ALLOWED_URL_SCHEMES = {"http", "https"}


def validate_news_url(url: object) -> str:
    """Return the stripped URL or raise InvalidInputError."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidInputError("Missing or invalid URL", reason=INVALID_URL_REASON)

    url = url.strip()
    if GOOGLE_NEWS_MARKER not in url:
        raise InvalidInputError(f"URL must be from {GOOGLE_NEWS_MARKER}", reason=INVALID_URL_REASON)

    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise InvalidInputError(f"Malformed URL: {exc}", reason=INVALID_URL_REASON) from exc
    if parts.scheme.lower() not in ALLOWED_URL_SCHEMES or not parts.netloc:
        raise InvalidInputError("URL must be an absolute http:// or https:// URL", reason=INVALID_URL_REASON)
    return url
