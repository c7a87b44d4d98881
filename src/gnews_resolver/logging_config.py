# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge. STDIO/CLI: ConsoleRenderer, HTTP: JSONRenderer.

Leaf module with no gnews_resolver imports. Safe to call early in startup.
Browserless tokens (``?token=...`` on the CDP endpoint) are scrubbed from
every rendered line.
"""

from __future__ import annotations

import logging
import re
import sys

import structlog

# Third-party loggers that drown resolver output at INFO
_NOISY_LOGGERS = ("asyncio", "httpx", "mcp.server.lowlevel.server")

_TOKEN_RE = re.compile(r"(token=)[^&\s'\"]+", re.IGNORECASE)


def redact_tokens(_logger, _method_name: str, event_dict: dict) -> dict:
    """structlog processor: mask ``token=`` query values in string fields."""
    for key, value in event_dict.items():
        if isinstance(value, str) and "token=" in value.lower():
            event_dict[key] = _TOKEN_RE.sub(r"\1<redacted>", value)
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_tokens,
    ]


def configure(*, json_output: bool = False, level: str = "INFO") -> None:
    """Route stdlib and structlog loggers through one stderr handler.

    Args:
        json_output: True for JSON lines (HTTP mode), False for human-readable (STDIO, CLI).
        level: Root logger level; unknown names fall back to INFO.
    """
    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request(request_id: str, **fields: str) -> None:
    """Attach request-scoped fields to every log line of the current task."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **fields)


def unbind_request() -> None:
    structlog.contextvars.clear_contextvars()
