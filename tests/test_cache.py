# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the known-URL table and the recent-resolution LRU."""

from __future__ import annotations

import json
import time

import pytest

from gnews_resolver import ResolutionResult, SignalKind
from gnews_resolver.cache import (
    CacheEntry,
    CacheStats,
    ResolutionCache,
    load_known_urls,
    normalize_cache_url,
)
from gnews_resolver.errors import ResolverError

SRC = "https://news.google.com/articles/CBMiAbC"
DST = "https://www.bbc.com/news/world-1"


def ok(url: str = DST) -> ResolutionResult:
    return ResolutionResult.success(url, SignalKind.CLICK_RESULT)


class TestNormalizeCacheUrl:
    def test_lowercases_scheme_and_host(self):
        assert normalize_cache_url("HTTPS://News.Google.COM/articles/x") == "https://news.google.com/articles/x"

    def test_preserves_path_case(self):
        assert normalize_cache_url(SRC) == SRC

    def test_strips_fragment(self):
        assert normalize_cache_url(SRC + "#top") == SRC

    def test_sorts_query(self):
        assert normalize_cache_url(SRC + "?hl=en&gl=US") == normalize_cache_url(SRC + "?gl=US&hl=en")

    def test_encoded_separator_keeps_distinct_key(self):
        encoded = normalize_cache_url(SRC + "?a=1%26b=2")
        assert encoded != normalize_cache_url(SRC + "?a=1&b=2")
        assert encoded == SRC + "?a=1%26b%3D2"

    def test_encoded_separator_not_served_for_other_link(self):
        cache = ResolutionCache()
        cache.store(SRC + "?a=1%26b=2", ok("https://bbc.com/one"))
        assert cache.lookup(SRC + "?a=1&b=2") is None
        assert cache.lookup(SRC + "?a=1%26b=2") == ok("https://bbc.com/one")


class TestCacheStats:
    def test_hit_rate_empty(self):
        assert CacheStats().hit_rate == 0.0

    def test_hits_sum(self):
        stats = CacheStats(static_hits=1, recent_hits=2, misses=1)
        assert stats.hits == 3
        assert stats.hit_rate == 0.75


class TestCacheEntry:
    def test_expiry(self):
        entry = CacheEntry(result=ok(), created_at=time.monotonic() - 10)
        assert entry.is_expired(5)
        assert not entry.is_expired(60)


class TestStaticTable:
    def test_known_lookup(self):
        cache = ResolutionCache({SRC: DST})
        result = cache.lookup(SRC)
        assert result == ResolutionResult.success(DST, SignalKind.KNOWN_LOOKUP)
        assert cache.stats.static_hits == 1
        assert cache.known_size == 1

    def test_known_lookup_normalized(self):
        cache = ResolutionCache({SRC: DST})
        assert cache.lookup(SRC + "#frag") is not None

    def test_rejects_google_target(self):
        with pytest.raises(ResolverError):
            ResolutionCache({SRC: "https://news.google.com/other"})

    def test_rejects_non_http_target(self):
        cache = ResolutionCache()
        with pytest.raises(ResolverError):
            cache.add_known(SRC, "javascript:alert(1)")


class TestRecentLru:
    def test_miss(self):
        cache = ResolutionCache()
        assert cache.lookup(SRC) is None
        assert cache.stats.misses == 1

    def test_store_and_hit(self):
        cache = ResolutionCache()
        cache.store(SRC, ok())
        assert cache.lookup(SRC) == ok()
        assert cache.stats.recent_hits == 1
        assert cache.lru_size == 1

    def test_non_success_not_stored(self):
        cache = ResolutionCache()
        cache.store(SRC, ResolutionResult.not_found())
        cache.store(SRC, ResolutionResult.invalid("x"))
        assert cache.lru_size == 0

    def test_eviction(self):
        cache = ResolutionCache(max_entries=2)
        for i in range(3):
            cache.store(f"{SRC}{i}", ok(f"{DST}{i}"))
        assert cache.lru_size == 2
        assert cache.stats.evictions == 1
        assert cache.lookup(f"{SRC}0") is None

    def test_lookup_refreshes_recency(self):
        cache = ResolutionCache(max_entries=2)
        cache.store(f"{SRC}0", ok())
        cache.store(f"{SRC}1", ok())
        cache.lookup(f"{SRC}0")
        cache.store(f"{SRC}2", ok())
        assert cache.lookup(f"{SRC}0") is not None
        assert cache.lookup(f"{SRC}1") is None

    def test_ttl_expiry(self):
        cache = ResolutionCache(ttl_s=0.0)
        cache.store(SRC, ok())
        time.sleep(0.01)
        assert cache.lookup(SRC) is None
        assert cache.stats.ttl_expirations == 1
        assert cache.lru_size == 0


class TestLoadKnownUrls:
    def test_load(self, tmp_path):
        p = tmp_path / "known.json"
        p.write_text(json.dumps({SRC: DST}))
        assert load_known_urls(p) == {SRC: DST}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ResolverError):
            load_known_urls(tmp_path / "missing.json")

    def test_wrong_shape(self, tmp_path):
        p = tmp_path / "known.json"
        p.write_text(json.dumps([SRC, DST]))
        with pytest.raises(ResolverError, match="JSON object"):
            load_known_urls(p)

    def test_non_string_value(self, tmp_path):
        p = tmp_path / "known.json"
        p.write_text(json.dumps({SRC: 1}))
        with pytest.raises(ResolverError):
            load_known_urls(p)
