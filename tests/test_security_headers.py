# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the hardening-header and CORS ASGI middleware."""

from __future__ import annotations

import httpx
import pytest
from starlette.applications import Starlette
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route

from gnews_resolver.security_headers import CorsMiddleware, SecurityHeadersMiddleware


async def _api(request):
    return JSONResponse({"ok": True})


async def _framed(request):
    return PlainTextResponse("hi", headers={"X-Frame-Options": "DENY"})


def _inner_app():
    return Starlette(
        routes=[
            Route("/api/extract-url", _api, methods=["GET", "POST"]),
            Route("/health", _api),
            Route("/framed", _framed),
        ]
    )


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


class TestSecurityHeadersMiddleware:
    @pytest.mark.parametrize("path", ["/api/extract-url", "/health"])
    async def test_headers_added(self, path):
        async with _client(SecurityHeadersMiddleware(_inner_app())) as client:
            resp = await client.get(path)
        assert resp.headers["x-content-type-options"] == "nosniff"
        assert resp.headers["x-xss-protection"] == "1; mode=block"
        assert resp.headers["x-frame-options"] == "SAMEORIGIN"

    async def test_existing_header_not_overwritten(self):
        async with _client(SecurityHeadersMiddleware(_inner_app())) as client:
            resp = await client.get("/framed")
        assert resp.headers.get_list("x-frame-options") == ["DENY"]

    async def test_lifespan_passthrough(self):
        calls = []

        async def app(scope, receive, send):
            calls.append(scope["type"])

        await SecurityHeadersMiddleware(app)({"type": "lifespan"}, None, None)
        assert calls == ["lifespan"]


class TestCorsMiddleware:
    async def test_wildcard_on_api(self):
        async with _client(CorsMiddleware(_inner_app())) as client:
            resp = await client.get("/api/extract-url", headers={"Origin": "https://app.example"})
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-allow-credentials"] == "true"
        assert resp.headers["access-control-allow-methods"] == "GET,POST,OPTIONS"
        assert "Content-Type" in resp.headers["access-control-allow-headers"]

    async def test_not_applied_outside_api(self):
        async with _client(CorsMiddleware(_inner_app())) as client:
            resp = await client.get("/health")
        assert "access-control-allow-origin" not in resp.headers

    async def test_allowlist_echoes_origin(self):
        app = CorsMiddleware(_inner_app(), allowed_origins=["https://app.example"])
        async with _client(app) as client:
            resp = await client.get("/api/extract-url", headers={"Origin": "https://app.example"})
        assert resp.headers["access-control-allow-origin"] == "https://app.example"
        assert resp.headers["vary"] == "Origin"

    async def test_allowlist_rejects_other_origin(self):
        app = CorsMiddleware(_inner_app(), allowed_origins=["https://app.example"])
        async with _client(app) as client:
            resp = await client.get("/api/extract-url", headers={"Origin": "https://evil.example"})
        assert resp.status_code == 200
        assert "access-control-allow-origin" not in resp.headers
