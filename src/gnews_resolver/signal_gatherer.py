# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Signal gathering: drive one browser session through the discovery sequence.

Order of the returned signals (the ranker relies on it):
  1. direct_redirect  – post-navigation URL, when the browser already left Google
  2. dom_anchor       – article-link anchors, only when there was no redirect
  3. observed_request – distinct non-Google, non-excluded outbound requests
  4. click_result     – where a click on the first article anchor led

Every step is best effort.  Only a dead browser (BrowserError) aborts.
"""

from __future__ import annotations

import logging
from typing import Protocol

from . import RawSignal, SignalKind, Trust
from .browser_session import BrowserConfig
from .classifier import DEFAULT_TABLES, ClassificationTables, classify
from .collector import is_usable_url
from .pipeline_timer import PipelineTimer

logger = logging.getLogger(__name__)

# Anchors Google News uses for the outbound article link
ARTICLE_LINK_SELECTORS: tuple[str, ...] = (
    'a[target="_blank"]',
    "a.DY5T1d",
    "a.VDXfz",
    "c-wiz a",
    "article a",
    "h3 a",
    "h4 a",
)


class SignalSource(Protocol):
    """The subset of BrowserSession the gatherer drives."""

    config: BrowserConfig

    async def navigate(self, url: str) -> bool: ...

    async def settle(self, ms: int) -> None: ...

    def current_url(self) -> str: ...

    def observed_requests(self) -> list[str]: ...

    async def extract_anchor_hrefs(self, selectors) -> list[str]: ...

    async def click_first_anchor(self, selectors) -> str | None: ...


def is_outbound(url: str, tables: ClassificationTables) -> bool:
    """Usable non-Google URL that is not noise."""
    return is_usable_url(url) and classify(url, tables) is not Trust.EXCLUDED


async def gather_signals(
    session: SignalSource,
    url: str,
    *,
    tables: ClassificationTables = DEFAULT_TABLES,
    config: BrowserConfig | None = None,
) -> list[RawSignal]:
    """Collect raw signals for *url* in priority order."""
    config = config or session.config
    timer = PipelineTimer()

    timer.stage("navigation")
    loaded = await session.navigate(url)
    timer.stage("settle")
    await session.settle(config.settle_ms)

    redirect: list[RawSignal] = []
    current = session.current_url()
    if is_outbound(current, tables):
        logger.info("Found direct redirect to: %s", current)
        redirect.append(RawSignal(SignalKind.DIRECT_REDIRECT, current))

    anchors: list[RawSignal] = []
    if not redirect:
        timer.stage("anchors")
        hrefs = await session.extract_anchor_hrefs(ARTICLE_LINK_SELECTORS)
        anchors = [RawSignal(SignalKind.DOM_ANCHOR, h) for h in hrefs]
        logger.info("Found %d links on the page", len(anchors))

    clicked: list[RawSignal] = []
    if any(is_usable_url(a.url) for a in anchors):
        timer.stage("click")
        click_url = await session.click_first_anchor(ARTICLE_LINK_SELECTORS)
        if click_url:
            logger.info("Click landed on: %s", click_url)
            clicked.append(RawSignal(SignalKind.CLICK_RESULT, click_url))

    # Snapshot after the click so requests from the whole page lifetime count
    requests = [RawSignal(SignalKind.OBSERVED_REQUEST, u) for u in session.observed_requests() if is_outbound(u, tables)]
    timer.finalize()

    signals = [*redirect, *anchors, *requests, *clicked]
    logger.info(
        "Signals gathered: loaded=%s redirect=%d anchors=%d requests=%d click=%d total_ms=%.1f stages=%s",
        loaded,
        len(redirect),
        len(anchors),
        len(requests),
        len(clicked),
        timer.total_ms(),
        timer.elapsed_per_stage(),
    )
    slowest = timer.slowest_stage()
    if slowest is not None and timer.total_ms() > config.navigation_timeout_ms:
        logger.warning("Slow resolution, mostly in '%s': %s", slowest, timer.hint_for_stage(slowest))
    return signals
