# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Resolver exception hierarchy.

All resolver-specific errors inherit from ResolverError, allowing callers
to catch the base class for any failure or specific subclasses for
targeted handling.  "No candidate found" is not an error: it is the
``not_found`` ResolutionResult.
"""

from __future__ import annotations

INVALID_URL_REASON = "missing_or_non_google_news_url"


class ResolverError(Exception):
    """Base exception for all resolver errors."""


class InvalidInputError(ResolverError):
    """Input URL is missing, malformed, or not a Google News link."""

    def __init__(self, message: str, *, reason: str = INVALID_URL_REASON) -> None:
        super().__init__(message)
        self.reason = reason


class BrowserError(ResolverError):
    """Browser launch, connection, or navigation failure."""


class BrowserLaunchError(BrowserError):
    """Browser could not be launched after bounded retries."""

    def __init__(self, message: str, *, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts
