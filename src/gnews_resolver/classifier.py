# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Table-driven domain classifier.

Each candidate URL lands in exactly one trust tier:

  1. excluded         – URL contains any exclude pattern (checked first, authoritative)
  2. known_publisher  – host equals or is a subdomain of a known news domain
  3. neutral          – everything else

Matching is exact / substring / suffix only.  A publisher mirror on an
unlisted TLD stays neutral.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from . import Candidate, RawSignal, Trust
from .errors import ResolverError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Default tables
# ---------------------------------------------------------------------------

DEFAULT_KNOWN_DOMAINS: frozenset[str] = frozenset(
    {
        "bbc.com",
        "bbc.co.uk",
        "nytimes.com",
        "washingtonpost.com",
        "theguardian.com",
        "cnn.com",
        "reuters.com",
        "bloomberg.com",
        "ft.com",
        "wsj.com",
        "forbes.com",
    }
)

DEFAULT_EXCLUDE_PATTERNS: frozenset[str] = frozenset(
    {
        "fonts.googleapis",
        "googletagmanager",
        "google-analytics",
        "analytics",
        "gtag",
        "tracking",
        "pixel",
        "ad.doubleclick",
        "doubleclick",
        "googlesyndication",
        "facebook.com/tr",
        "cdn",
        "ajax.googleapis",
    }
)


@dataclass(frozen=True, slots=True)
class ClassificationTables:
    """Read-only lookup tables shared by every resolution."""

    known_domains: frozenset[str] = DEFAULT_KNOWN_DOMAINS
    exclude_patterns: frozenset[str] = DEFAULT_EXCLUDE_PATTERNS

    @classmethod
    def build(
        cls,
        known_domains: Iterable[str] | None = None,
        exclude_patterns: Iterable[str] | None = None,
    ) -> ClassificationTables:
        """Build tables from plain iterables, keeping defaults for omitted ones.

        Domains and patterns are lowercased, domains lose a leading dot; empty entries are
        dropped so a stray "" never matches every URL.
        """
        domains = DEFAULT_KNOWN_DOMAINS
        if known_domains is not None:
            domains = frozenset(d.strip().lower().lstrip(".") for d in known_domains if d and d.strip())
        patterns = DEFAULT_EXCLUDE_PATTERNS
        if exclude_patterns is not None:
            patterns = frozenset(p.lower() for p in exclude_patterns if p)
        return cls(known_domains=domains, exclude_patterns=patterns)


DEFAULT_TABLES = ClassificationTables()


def load_tables(path: str | Path) -> ClassificationTables:
    """Load tables from a JSON file ``{"known_domains": [...], "exclude_patterns": [...]}``."""
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ResolverError(f"Cannot read classification tables from {p}: {exc}") from exc
    if not isinstance(data, dict):
        raise ResolverError(f"Classification tables in {p} must be a JSON object")

    for key in ("known_domains", "exclude_patterns"):
        value = data.get(key)
        if value is not None and not (isinstance(value, list) and all(isinstance(v, str) for v in value)):
            raise ResolverError(f"'{key}' in {p} must be a list of strings")

    tables = ClassificationTables.build(data.get("known_domains"), data.get("exclude_patterns"))
    logger.info(
        "Classification tables loaded: %s (known_domains=%d, exclude_patterns=%d)",
        p,
        len(tables.known_domains),
        len(tables.exclude_patterns),
    )
    return tables


# ---------------------------------------------------------------------------
# Host helpers
# ---------------------------------------------------------------------------


def host_of(url: str) -> str:
    """Lowercased hostname of *url* without port, or "" if unparsable."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def host_matches(host: str, domain: str) -> bool:
    """True when *host* equals *domain* or is one of its subdomains."""
    return host == domain or host.endswith("." + domain)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify(url: str, tables: ClassificationTables = DEFAULT_TABLES) -> Trust:
    """Classify a single candidate URL."""
    lowered = url.lower()
    if any(pattern in lowered for pattern in tables.exclude_patterns):
        return Trust.EXCLUDED

    host = host_of(url)
    if host and any(host_matches(host, domain) for domain in tables.known_domains):
        return Trust.KNOWN_PUBLISHER

    return Trust.NEUTRAL


def build_candidates(
    signals: Iterable[RawSignal],
    tables: ClassificationTables = DEFAULT_TABLES,
) -> list[Candidate]:
    """Attach a trust tier to every collected signal, preserving order."""
    return [Candidate(url=s.url, source_kind=s.kind, trust=classify(s.url, tables)) for s in signals]
