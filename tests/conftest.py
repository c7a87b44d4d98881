# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import gnews_resolver  # noqa: F401
except ImportError:
    raise ImportError("gnews_resolver is not installed. Run: pip install -e '.[dev]'") from None

import pytest


@pytest.fixture(autouse=True)
def _block_real_browser(request, monkeypatch):
    """Safety net: prevent real browser sessions in unit tests.

    Tests that need a session pass a ``session_factory`` to ResolverService
    (see ``_resolver_helpers.factory_for``).  Tests that forget get a clear
    error instead of silently launching Chromium.

    Tests that exercise BrowserSession.start itself opt out with::

        @pytest.mark.allow_real_start
    """
    if "allow_real_start" in request.keywords:
        return

    async def _no_real_start(self):
        raise RuntimeError("Test tried to start a real browser session. Pass a fake session_factory in your test.")

    monkeypatch.setattr("gnews_resolver.browser_session.BrowserSession.start", _no_real_start)


@pytest.fixture(autouse=True)
def _reset_server_state():
    """Reset module-level server state before and after each test."""
    import gnews_resolver.server as srv

    old_service = srv._service
    old_transport_mode = srv._transport_mode
    srv._service = None
    srv._transport_mode = "stdio"
    yield
    srv._service = old_service
    srv._transport_mode = old_transport_mode
