# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Candidate collector: normalize raw browser signals into one ordered list.

Callers pass signals in discovery order (direct redirect, DOM anchors,
observed requests, click result).  The collector never reorders: it only
drops unusable URLs and later duplicates.  Pure, no I/O.
"""

from __future__ import annotations

from collections.abc import Iterable

from . import RawSignal
from .classifier import host_matches, host_of

# Aggregator / asset hosts that can never be the target article
AGGREGATOR_DOMAINS: tuple[str, ...] = ("google.com", "gstatic.com")

_ALLOWED_PREFIXES = ("http://", "https://")


def is_aggregator_host(host: str) -> bool:
    return any(host_matches(host, domain) for domain in AGGREGATOR_DOMAINS)


def is_usable_url(url: str) -> bool:
    """True when *url* is an absolute http(s) URL outside the aggregator."""
    if not url or not url.startswith(_ALLOWED_PREFIXES):
        return False
    host = host_of(url)
    if not host:
        return False
    return not is_aggregator_host(host)


def collect(signals: Iterable[RawSignal]) -> list[RawSignal]:
    """Filter and deduplicate *signals*; the first sighting of a URL keeps its position."""
    seen: set[str] = set()
    collected: list[RawSignal] = []
    for signal in signals:
        url = (signal.url or "").strip()
        if not is_usable_url(url) or url in seen:
            continue
        seen.add(url)
        collected.append(signal if url == signal.url else RawSignal(kind=signal.kind, url=url))
    return collected
