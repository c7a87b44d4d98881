# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the table-driven trust classifier."""

from __future__ import annotations

import json

import pytest
from _resolver_helpers import sig

from gnews_resolver import Trust
from gnews_resolver.classifier import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_KNOWN_DOMAINS,
    DEFAULT_TABLES,
    ClassificationTables,
    build_candidates,
    classify,
    host_matches,
    host_of,
    load_tables,
)
from gnews_resolver.errors import ResolverError


class TestHostHelpers:
    def test_host_of_lowercases_and_drops_port(self):
        assert host_of("https://WWW.BBC.com:443/news") == "www.bbc.com"

    def test_host_of_unparsable(self):
        assert host_of("not a url") == ""
        assert host_of("http://[::1") == ""

    @pytest.mark.parametrize(
        ("host", "domain", "expected"),
        [
            ("bbc.com", "bbc.com", True),
            ("www.bbc.com", "bbc.com", True),
            ("news.bbc.co.uk", "bbc.co.uk", True),
            ("notbbc.com", "bbc.com", False),
            ("bbc.com.evil.net", "bbc.com", False),
        ],
    )
    def test_host_matches(self, host, domain, expected):
        assert host_matches(host, domain) is expected


class TestClassify:
    def test_known_publisher(self):
        assert classify("https://www.bbc.com/news/world-1") is Trust.KNOWN_PUBLISHER

    def test_known_publisher_subdomain(self):
        assert classify("https://edition.cnn.com/2024/story") is Trust.KNOWN_PUBLISHER

    def test_neutral(self):
        assert classify("https://example.com/a") is Trust.NEUTRAL

    @pytest.mark.parametrize(
        "url",
        [
            "https://ads.doubleclick.net/x",
            "https://www.googletagmanager.com/gtm.js",
            "https://www.google-analytics.com/collect",
            "https://cdn.example.com/script.js",
            "https://www.facebook.com/tr?id=1",
            "https://example.com/pixel.gif",
            "https://tracking.example.com/t",
        ],
    )
    def test_excluded(self, url):
        assert classify(url) is Trust.EXCLUDED

    def test_exclusion_beats_known_domain(self):
        assert classify("https://cdn.bbc.com/assets/app") is Trust.EXCLUDED

    def test_exclude_match_is_case_insensitive_on_url(self):
        assert classify("https://CDN.Example.com/x") is Trust.EXCLUDED

    def test_unlisted_tld_mirror_stays_neutral(self):
        assert classify("https://bbc.example.org/news") is Trust.NEUTRAL

    def test_custom_tables(self):
        tables = ClassificationTables.build(known_domains=["example.com"], exclude_patterns=["/ads/"])
        assert classify("https://example.com/story", tables) is Trust.KNOWN_PUBLISHER
        assert classify("https://bbc.com/news", tables) is Trust.NEUTRAL
        assert classify("https://example.com/ads/1", tables) is Trust.EXCLUDED


class TestClassificationTables:
    def test_defaults(self):
        assert DEFAULT_TABLES.known_domains == DEFAULT_KNOWN_DOMAINS
        assert DEFAULT_TABLES.exclude_patterns == DEFAULT_EXCLUDE_PATTERNS
        assert "bbc.com" in DEFAULT_KNOWN_DOMAINS
        assert "ad.doubleclick" in DEFAULT_EXCLUDE_PATTERNS

    def test_build_normalizes_domains(self):
        tables = ClassificationTables.build(known_domains=[" .Example.COM ", "", "  "])
        assert tables.known_domains == frozenset({"example.com"})

    def test_build_drops_empty_patterns(self):
        tables = ClassificationTables.build(exclude_patterns=["", "cdn"])
        assert tables.exclude_patterns == frozenset({"cdn"})
        # An empty pattern would otherwise exclude everything
        assert classify("https://example.com/a", tables) is Trust.NEUTRAL

    def test_build_lowercases_patterns(self):
        tables = ClassificationTables.build(exclude_patterns=["Tracker"])
        assert tables.exclude_patterns == frozenset({"tracker"})
        assert classify("https://example.com/Tracker/1", tables) is Trust.EXCLUDED

    def test_build_omitted_keeps_defaults(self):
        tables = ClassificationTables.build(known_domains=["example.com"])
        assert tables.exclude_patterns == DEFAULT_EXCLUDE_PATTERNS

    def test_frozen(self):
        with pytest.raises(AttributeError):
            DEFAULT_TABLES.known_domains = frozenset()  # type: ignore[misc]


class TestLoadTables:
    def test_load(self, tmp_path):
        p = tmp_path / "tables.json"
        p.write_text(json.dumps({"known_domains": ["lemonde.fr"], "exclude_patterns": ["beacon"]}))
        tables = load_tables(p)
        assert tables.known_domains == frozenset({"lemonde.fr"})
        assert tables.exclude_patterns == frozenset({"beacon"})

    def test_partial_file_keeps_defaults(self, tmp_path):
        p = tmp_path / "tables.json"
        p.write_text(json.dumps({"known_domains": ["lemonde.fr"]}))
        assert load_tables(p).exclude_patterns == DEFAULT_EXCLUDE_PATTERNS

    def test_missing_file(self, tmp_path):
        with pytest.raises(ResolverError, match="Cannot read"):
            load_tables(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        p = tmp_path / "tables.json"
        p.write_text("{not json")
        with pytest.raises(ResolverError):
            load_tables(p)

    def test_not_an_object(self, tmp_path):
        p = tmp_path / "tables.json"
        p.write_text("[]")
        with pytest.raises(ResolverError, match="JSON object"):
            load_tables(p)

    def test_wrong_value_type(self, tmp_path):
        p = tmp_path / "tables.json"
        p.write_text(json.dumps({"known_domains": "bbc.com"}))
        with pytest.raises(ResolverError, match="known_domains"):
            load_tables(p)


class TestBuildCandidates:
    def test_preserves_order_and_kind(self):
        signals = [sig("anchor", "https://bbc.com/a"), sig("request", "https://example.com/b")]
        out = build_candidates(signals)
        assert [(c.url, c.source_kind, c.trust) for c in out] == [
            ("https://bbc.com/a", signals[0].kind, Trust.KNOWN_PUBLISHER),
            ("https://example.com/b", signals[1].kind, Trust.NEUTRAL),
        ]
