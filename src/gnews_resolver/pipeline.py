# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Resolution pipeline orchestration.

Flow:
  raw signals (discovery order)
    → collect   (drop non-http / aggregator hosts, dedupe)
    → classify  (known_publisher / neutral / excluded)
    → rank      (drop excluded, trust bucket, browser-confirmed first)
    → decide    (top candidate or not_found)
    → ResolutionResult

Single pass, synchronous, no I/O.  The only shared input is the
read-only ClassificationTables.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from . import Candidate, RawSignal, ResolutionResult, Trust
from .classifier import DEFAULT_TABLES, ClassificationTables, build_candidates
from .collector import collect
from .decision import decide
from .ranker import rank

logger = logging.getLogger(__name__)


@dataclass
class PipelineTrace:
    """Intermediate lists of one run, kept for logging and debugging."""

    raw_count: int = 0
    collected: list[RawSignal] = field(default_factory=list)
    candidates: list[Candidate] = field(default_factory=list)
    ranked: list[Candidate] = field(default_factory=list)

    @property
    def excluded_count(self) -> int:
        return sum(1 for c in self.candidates if c.trust is Trust.EXCLUDED)


def run_pipeline(
    signals: Iterable[RawSignal],
    tables: ClassificationTables = DEFAULT_TABLES,
) -> tuple[ResolutionResult, PipelineTrace]:
    """Run all stages and return the decision plus the per-stage trace."""
    raw = list(signals)
    trace = PipelineTrace(raw_count=len(raw))
    trace.collected = collect(raw)
    trace.candidates = build_candidates(trace.collected, tables)
    trace.ranked = rank(trace.candidates)
    result = decide(trace.ranked)

    logger.info(
        "Pipeline: raw=%d collected=%d excluded=%d ranked=%d status=%s kind=%s",
        trace.raw_count,
        len(trace.collected),
        trace.excluded_count,
        len(trace.ranked),
        result.status,
        result.source_kind or "-",
    )
    return result, trace


def resolve_signals(
    signals: Iterable[RawSignal],
    tables: ClassificationTables = DEFAULT_TABLES,
) -> ResolutionResult:
    """Pick the most likely target article from *signals*."""
    result, _trace = run_pipeline(signals, tables)
    return result
