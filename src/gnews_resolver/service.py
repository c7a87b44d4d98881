# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""ResolverService: one resolution request end to end.

    validate → known-URL pre-check → browser session (bounded) → gather
    → pipeline → remember success

Shared state is the read-only tables and the known-URL cache.  Each request
gets its own browser session, released on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from playwright.async_api import Error as PlaywrightError

from . import RawSignal, ResolutionResult
from .browser_session import BrowserConfig, BrowserSession, create_session
from .cache import ResolutionCache
from .classifier import DEFAULT_TABLES, ClassificationTables
from .errors import BrowserError, InvalidInputError
from .logging_config import bind_request, unbind_request
from .pipeline import resolve_signals
from .signal_gatherer import gather_signals
from .validation import validate_news_url

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 5

SessionFactory = Callable[[BrowserConfig], AbstractAsyncContextManager[BrowserSession]]


class ResolverService:
    """Resolve Google News links to publisher article URLs."""

    def __init__(
        self,
        *,
        tables: ClassificationTables = DEFAULT_TABLES,
        browser_config: BrowserConfig | None = None,
        cache: ResolutionCache | None = None,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.tables = tables
        self.browser_config = browser_config or BrowserConfig()
        self.cache = cache
        self.max_sessions = max(1, max_sessions)
        self._session_factory = session_factory or create_session
        self._semaphore = asyncio.Semaphore(self.max_sessions)

    async def resolve(self, url: object) -> ResolutionResult:
        """Resolve *url*.  Raises BrowserError only when no signals could be gathered at all."""
        request_id = uuid.uuid4().hex[:12]
        bind_request(request_id)
        try:
            return await self._resolve(url)
        finally:
            unbind_request()

    async def _resolve(self, url: object) -> ResolutionResult:
        try:
            target = validate_news_url(url)
        except InvalidInputError as exc:
            logger.info("Rejected input: %s", exc)
            return ResolutionResult.invalid(exc.reason)

        logger.info("Processing request for URL: %s", target)

        if self.cache is not None:
            cached = self.cache.lookup(target)
            if cached is not None:
                logger.info("Known URL hit: %s -> %s (%s)", target, cached.url, cached.source_kind)
                return cached

        signals = await self._gather(target)
        result = resolve_signals(signals, self.tables)

        if result.ok:
            logger.info("Returning best candidate URL: %s (%s)", result.url, result.source_kind)
            if self.cache is not None:
                self.cache.store(target, result)
        else:
            logger.info("No candidate found for %s", target)
        return result

    async def _gather(self, url: str) -> list[RawSignal]:
        async with self._semaphore:
            try:
                async with self._session_factory(self.browser_config) as session:
                    return await gather_signals(
                        session,
                        url,
                        tables=self.tables,
                        config=self.browser_config,
                    )
            except BrowserError:
                logger.error("Browser failure while resolving %s", url, exc_info=True)
                raise
            except PlaywrightError as exc:
                logger.error("Unexpected browser error while resolving %s", url, exc_info=True)
                raise BrowserError(f"Browser failure: {exc}") from exc
