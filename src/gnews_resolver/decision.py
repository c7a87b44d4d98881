# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Decision resolver: top-ranked candidate or not found."""

from __future__ import annotations

from collections.abc import Sequence

from . import Candidate, ResolutionResult


def decide(ranked: Sequence[Candidate]) -> ResolutionResult:
    if not ranked:
        return ResolutionResult.not_found()
    best = ranked[0]
    return ResolutionResult.success(best.url, best.source_kind)
