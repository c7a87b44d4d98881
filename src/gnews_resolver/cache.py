# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Known-URL pre-check: answer repeat lookups without launching a browser.

Pure Python module, no browser dependencies.

Two layers:
- Static table: Google News URL → article URL pairs loaded at startup (never expire)
- Recent LRU: successful browser resolutions, TTL-bounded

Methods never await, so one instance is safe to share between requests
on a single event loop.  It is NOT thread-safe.
"""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from . import ResolutionResult, SignalKind
from .collector import is_usable_url
from .errors import ResolverError

logger = logging.getLogger("gnews_resolver.cache")


# ---------------------------------------------------------------------------
# URL normalization
# ---------------------------------------------------------------------------


def normalize_cache_url(url: str) -> str:
    """Normalize URL for cache key: lowercase scheme/netloc, strip fragment, sort query.

    Preserves path case (Google News article ids are case-sensitive).
    """
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return url

    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    params = parse_qsl(parsed.query, keep_blank_values=True)
    sorted_query = urlencode(sorted(params))
    return urlunparse((scheme, netloc, parsed.path, parsed.params, sorted_query, ""))


# ---------------------------------------------------------------------------
# Cache entry + stats
# ---------------------------------------------------------------------------


@dataclass
class CacheEntry:
    """A previously resolved article URL."""

    result: ResolutionResult
    created_at: float  # time.monotonic()

    def is_expired(self, ttl: float) -> bool:
        return (time.monotonic() - self.created_at) > ttl


@dataclass
class CacheStats:
    """Counters for cache behaviour, used for logging and /health output."""

    static_hits: int = 0
    recent_hits: int = 0
    misses: int = 0
    ttl_expirations: int = 0
    evictions: int = 0

    @property
    def hits(self) -> int:
        return self.static_hits + self.recent_hits

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


# ---------------------------------------------------------------------------
# ResolutionCache
# ---------------------------------------------------------------------------


class ResolutionCache:
    """Static known-URL table + LRU of recent successful resolutions."""

    def __init__(
        self,
        known: Mapping[str, str] | None = None,
        *,
        max_entries: int = 256,
        ttl_s: float = 3600.0,
    ) -> None:
        self._max_entries = max_entries
        self._ttl_s = ttl_s
        self._known: dict[str, str] = {}
        self._recent: OrderedDict[str, CacheEntry] = OrderedDict()
        self._stats = CacheStats()
        for source, target in (known or {}).items():
            self.add_known(source, target)

    # -- Static table --

    def add_known(self, source_url: str, target_url: str) -> None:
        """Register a fixed Google News → article mapping."""
        if not is_usable_url(target_url):
            raise ResolverError(f"Known target is not a usable article URL: {target_url!r}")
        self._known[normalize_cache_url(source_url)] = target_url

    @property
    def known_size(self) -> int:
        return len(self._known)

    # -- Recent LRU --

    def store(self, source_url: str, result: ResolutionResult) -> None:
        """Remember a successful resolution; other statuses are ignored."""
        if not result.ok:
            return
        key = normalize_cache_url(source_url)
        self._recent[key] = CacheEntry(result=result, created_at=time.monotonic())
        self._recent.move_to_end(key)

        while len(self._recent) > self._max_entries:
            evicted_key, _ = self._recent.popitem(last=False)
            self._stats.evictions += 1
            logger.debug("Cache eviction: %s", evicted_key)

        logger.debug("Cache store: url=%s lru_size=%d", source_url, len(self._recent))

    def lookup(self, source_url: str) -> ResolutionResult | None:
        """Return a cached result, or None when the browser must be consulted."""
        key = normalize_cache_url(source_url)

        target = self._known.get(key)
        if target is not None:
            self._stats.static_hits += 1
            return ResolutionResult.success(target, SignalKind.KNOWN_LOOKUP)

        entry = self._recent.get(key)
        if entry is None:
            self._stats.misses += 1
            return None
        if entry.is_expired(self._ttl_s):
            self._recent.pop(key, None)
            self._stats.ttl_expirations += 1
            self._stats.misses += 1
            logger.debug("Cache TTL expired: %s", key)
            return None

        self._recent.move_to_end(key)
        self._stats.recent_hits += 1
        return entry.result

    # -- Introspection --

    @property
    def stats(self) -> CacheStats:
        return self._stats

    @property
    def lru_size(self) -> int:
        return len(self._recent)


def load_known_urls(path: str | Path) -> dict[str, str]:
    """Load ``{google_news_url: article_url}`` pairs from a JSON file."""
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ResolverError(f"Cannot read known URLs from {p}: {exc}") from exc
    if not isinstance(data, dict) or not all(isinstance(k, str) and isinstance(v, str) for k, v in data.items()):
        raise ResolverError(f"Known URLs in {p} must be a JSON object of string → string")
    logger.info("Known URL table loaded: %s (%d entries)", p, len(data))
    return data
