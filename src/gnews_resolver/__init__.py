# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""gnews-resolver: find the publisher article behind a Google News link.

Google News article links never expose their target.  The resolver renders
the link in a headless browser, gathers every URL the page reveals
(redirects, DOM anchors, network requests, click navigations) and ranks
them to pick the most likely article:

- collector: normalize + deduplicate raw signals
- classifier: known publisher / neutral / excluded
- ranker: trust bucket, then browser-confirmed first, then arrival order
- decision: top candidate or not found
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class SignalKind(StrEnum):
    """Where a candidate URL was discovered."""

    DIRECT_REDIRECT = "direct_redirect"
    DOM_ANCHOR = "dom_anchor"
    OBSERVED_REQUEST = "observed_request"
    CLICK_RESULT = "click_result"
    KNOWN_LOOKUP = "known_lookup"  # result-only: answered by the known-URL table


# Signals that reflect a navigation the browser actually performed
BROWSER_CONFIRMED_KINDS = frozenset({SignalKind.DIRECT_REDIRECT, SignalKind.CLICK_RESULT})


class Trust(StrEnum):
    """Classification tier used to order candidates."""

    KNOWN_PUBLISHER = "known_publisher"
    NEUTRAL = "neutral"
    EXCLUDED = "excluded"


@dataclass(frozen=True, slots=True)
class RawSignal:
    """One URL observed by the browser during a single resolution attempt."""

    kind: SignalKind
    url: str


@dataclass(frozen=True, slots=True)
class Candidate:
    """A classified URL that may be the target article."""

    url: str
    source_kind: SignalKind
    trust: Trust

    @property
    def browser_confirmed(self) -> bool:
        return self.source_kind in BROWSER_CONFIRMED_KINDS


class ResolutionStatus(StrEnum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    """Terminal value of one resolution request."""

    status: ResolutionStatus
    url: str | None = None
    source_kind: SignalKind | None = None
    reason: str = ""

    @classmethod
    def success(cls, url: str, source_kind: SignalKind) -> ResolutionResult:
        return cls(status=ResolutionStatus.SUCCESS, url=url, source_kind=source_kind)

    @classmethod
    def not_found(cls) -> ResolutionResult:
        return cls(status=ResolutionStatus.NOT_FOUND)

    @classmethod
    def invalid(cls, reason: str) -> ResolutionResult:
        return cls(status=ResolutionStatus.INVALID, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status is ResolutionStatus.SUCCESS


__all__ = [
    "BROWSER_CONFIRMED_KINDS",
    "Candidate",
    "RawSignal",
    "ResolutionResult",
    "ResolutionStatus",
    "SignalKind",
    "Trust",
]
