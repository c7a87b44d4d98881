# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""gnews-resolver server.

Exposes redirect resolution two ways from one process:

- MCP tool ``resolve_google_news_url`` (STDIO or Streamable HTTP)
- JSON API (HTTP transport only):
    GET/POST/OPTIONS /api/extract-url  → {"extractedUrl": ...} | {"error": ...}
    GET/POST/OPTIONS /api/extract      → {"original_url": ..., "target_url": ...}
    GET /health

All logging goes to stderr.
"""

from __future__ import annotations

import argparse
import functools
import json
import logging
import os
import sys
from contextlib import suppress

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import BaseModel, ValidationError

from . import ResolutionResult
from .browser_session import BrowserConfig
from .cache import ResolutionCache, load_known_urls
from .classifier import DEFAULT_TABLES, load_tables
from .error_responses import ErrorResponse, from_exception, from_result, missing_url, success_payload
from .errors import ResolverError
from .service import DEFAULT_MAX_SESSIONS, ResolverService

# Logging configured in main() via logging_config.configure()
logger = logging.getLogger("gnews_resolver.server")

mcp = FastMCP(
    name="gnews-resolver",
    instructions=(
        "Resolves Google News article links (news.google.com/...) to the publisher's article URL. "
        "Call resolve_google_news_url with one link at a time."
    ),
)

_service: ResolverService | None = None
_transport_mode: str = "stdio"


def _get_service() -> ResolverService:
    """Return the process-wide service (default config when main() did not run)."""
    global _service
    if _service is None:
        _service = ResolverService(cache=ResolutionCache())
    return _service


class ExtractRequest(BaseModel):
    """JSON body of POST /api/extract-url and /api/extract."""

    url: str | None = None


# ── Request helpers ──────────────────────────────────────────────────


async def _read_url(request) -> tuple[str | None, ErrorResponse | None]:
    """URL from the query string, else from the JSON body (POST only)."""
    url = request.query_params.get("url")
    if url:
        return url, None
    if request.method != "POST":
        return None, missing_url()

    body = await request.body()
    try:
        payload = ExtractRequest.model_validate_json(body or b"{}")
    except ValidationError:
        return None, missing_url()
    if not payload.url:
        return None, missing_url()
    return payload.url, None


async def _run_resolution(url: str) -> tuple[ResolutionResult | None, ErrorResponse | None]:
    try:
        result = await _get_service().resolve(url)
    except ResolverError as exc:
        logger.error("Error extracting target URL: %s", exc)
        return None, from_exception(exc)
    except Exception as exc:
        logger.exception("Unexpected failure extracting target URL")
        return None, from_exception(exc)
    return result, from_result(result)


# ── HTTP routes (active only in HTTP mode) ───────────────────────────


@mcp.custom_route("/api/extract-url", methods=["GET", "POST", "OPTIONS"])
async def _extract_url(request):
    from starlette.responses import JSONResponse

    if request.method == "OPTIONS":
        return JSONResponse({})

    url, problem = await _read_url(request)
    if problem is not None:
        return problem.to_response()

    result, problem = await _run_resolution(url)
    if problem is not None:
        return problem.to_response()
    return JSONResponse(success_payload(result))


@mcp.custom_route("/api/extract", methods=["GET", "POST", "OPTIONS"])
async def _extract_legacy(request):
    """Older response shape kept for existing clients."""
    from starlette.responses import JSONResponse

    if request.method == "OPTIONS":
        return JSONResponse({})

    url, problem = await _read_url(request)
    if problem is not None:
        return problem.to_response()

    result, problem = await _run_resolution(url)
    if problem is not None:
        return problem.to_response()
    return JSONResponse({"original_url": url, "target_url": result.url})


@mcp.custom_route("/health", methods=["GET"])
async def _health_check(request):
    from starlette.responses import JSONResponse

    service = _get_service()
    body: dict = {"status": "ok", "transport": _transport_mode, "max_sessions": service.max_sessions}
    if service.cache is not None:
        stats = service.cache.stats
        body["cache"] = {
            "known_entries": service.cache.known_size,
            "recent_entries": service.cache.lru_size,
            "hits": stats.hits,
            "misses": stats.misses,
            "hit_rate": round(stats.hit_rate, 3),
        }
    return JSONResponse(body)


# ── MCP tool ─────────────────────────────────────────────────────────


@mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))
async def resolve_google_news_url(url: str) -> str:
    """Resolve a Google News article link to the publisher's article URL.

    Renders the link in a headless browser and ranks every URL it reveals.
    Returns JSON: {"extractedUrl": "..."} on success or {"error": "..."}.

    Args:
        url: A news.google.com article link (http/https).
    """
    result, problem = await _run_resolution(url)
    if problem is not None:
        return json.dumps(problem.to_dict(), ensure_ascii=False)
    return json.dumps(success_payload(result), ensure_ascii=False)


# ── App assembly ─────────────────────────────────────────────────────


def build_http_app(*, cors_origins: list[str] | None = None):
    """Starlette app with routes + MCP endpoint, wrapped in header middleware."""
    from .security_headers import CorsMiddleware, SecurityHeadersMiddleware

    app = mcp.streamable_http_app()
    app = SecurityHeadersMiddleware(app)
    app = CorsMiddleware(app, allowed_origins=cors_origins or ["*"])
    return app


def _parse_server_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI args and env vars for server configuration."""
    parser = argparse.ArgumentParser(description="gnews-resolver server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport mode: stdio (default) or http",
    )
    parser.add_argument("--host", default="127.0.0.1", help="HTTP server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="HTTP server port (default: 8000)")
    parser.add_argument(
        "--cors-origin",
        action="append",
        default=None,
        help="Allowed CORS origin for /api/ routes (repeatable, default: *)",
    )
    parser.add_argument("--tables", default="", help="JSON file with known_domains / exclude_patterns")
    parser.add_argument("--known-urls", default="", help="JSON file mapping Google News URLs to article URLs")
    parser.add_argument("--ws-endpoint", default="", help="Remote CDP browser endpoint (ws:// or wss://)")
    parser.add_argument(
        "--max-sessions",
        type=int,
        default=DEFAULT_MAX_SESSIONS,
        help=f"Maximum concurrent browser sessions (default: {DEFAULT_MAX_SESSIONS})",
    )
    args, _ = parser.parse_known_args(argv)

    # Env var overrides
    env_transport = os.environ.get("GNEWS_RESOLVER_TRANSPORT", "").strip().lower()
    if env_transport in ("stdio", "http"):
        args.transport = env_transport

    env_host = os.environ.get("GNEWS_RESOLVER_HOST", "").strip()
    if env_host:
        args.host = env_host

    env_port = os.environ.get("GNEWS_RESOLVER_PORT", "").strip()
    if env_port:
        with suppress(ValueError):
            args.port = int(env_port)

    env_cors = os.environ.get("GNEWS_RESOLVER_CORS_ORIGIN", "").strip()
    if env_cors and args.cors_origin is None:
        args.cors_origin = [o.strip() for o in env_cors.split(",") if o.strip()]

    env_tables = os.environ.get("GNEWS_RESOLVER_TABLES", "").strip()
    if env_tables and not args.tables:
        args.tables = env_tables

    env_known = os.environ.get("GNEWS_RESOLVER_KNOWN_URLS", "").strip()
    if env_known and not args.known_urls:
        args.known_urls = env_known

    env_sessions = os.environ.get("GNEWS_RESOLVER_MAX_SESSIONS", "").strip()
    if env_sessions:
        with suppress(ValueError):
            args.max_sessions = int(env_sessions)

    return args


def build_service(args: argparse.Namespace) -> ResolverService:
    """Construct the service from parsed arguments (tables, known URLs, browser)."""
    tables = load_tables(args.tables) if args.tables else DEFAULT_TABLES
    known = load_known_urls(args.known_urls) if args.known_urls else None
    browser_config = BrowserConfig.from_env()
    if args.ws_endpoint:
        browser_config.ws_endpoint = args.ws_endpoint
    if getattr(args, "headed", False):
        browser_config.headless = False
    return ResolverService(
        tables=tables,
        browser_config=browser_config,
        cache=ResolutionCache(known),
        max_sessions=args.max_sessions,
    )


async def _run_http_server(host: str, port: int, *, cors_origins: list[str] | None = None) -> None:
    import uvicorn

    app = build_http_app(cors_origins=cors_origins)
    config = uvicorn.Config(app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    try:
        await server.serve()
    finally:
        logger.info("HTTP mode: shutdown complete")


def main(argv: list[str] | None = None):
    """Entry point for the server."""
    global _service, _transport_mode

    args = _parse_server_args(argv if argv is not None else sys.argv[1:])
    _transport_mode = args.transport

    # Configure structlog BEFORE any log output
    from .logging_config import configure as configure_logging

    configure_logging(json_output=(_transport_mode == "http"), level="INFO")

    try:
        _service = build_service(args)
    except ResolverError as exc:
        logger.error("Startup failed: %s", exc)
        sys.exit(1)

    if _transport_mode == "stdio":
        logger.info("Starting gnews-resolver MCP server (stdio)")
        mcp.run(transport="stdio")
        return

    logger.info(
        "Starting gnews-resolver server (http, host=%s, port=%d, max_sessions=%d)",
        args.host,
        args.port,
        _service.max_sessions,
    )
    import anyio

    runner = functools.partial(_run_http_server, args.host, args.port, cors_origins=args.cors_origin)
    anyio.run(runner)


if __name__ == "__main__":
    main()
