# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Priority ranker.

Final order:
    [known_publisher: browser-confirmed first, then arrival order]
 ++ [neutral:         browser-confirmed first, then arrival order]

Excluded candidates are dropped.  The sort key is a pure function of the
candidate, and ``sorted`` is stable, so ties keep arrival order and ranking
an already-ranked list is a no-op.
"""

from __future__ import annotations

from collections.abc import Sequence

from . import Candidate, Trust

_TRUST_ORDER: dict[Trust, int] = {
    Trust.KNOWN_PUBLISHER: 0,
    Trust.NEUTRAL: 1,
}


def _rank_key(candidate: Candidate) -> tuple[int, int]:
    return (_TRUST_ORDER[candidate.trust], 0 if candidate.browser_confirmed else 1)


def rank(candidates: Sequence[Candidate]) -> list[Candidate]:
    """Return surviving candidates in priority order (input is not mutated)."""
    surviving = [c for c in candidates if c.trust is not Trust.EXCLUDED]
    return sorted(surviving, key=_rank_key)
