# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""gnews-resolver CLI: resolve and serve commands.

Usage:
    gnews-resolver resolve URL [--json] [--tables PATH] [--known-urls PATH] [--ws-endpoint WS] [--headed]
    gnews-resolver serve [server options]

Exit codes for ``resolve``: 0 resolved, 1 not found or browser failure, 2 invalid input.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from . import ResolutionStatus

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def cmd_resolve(args: argparse.Namespace) -> int:
    """Resolve one Google News link and print the article URL."""
    from .error_responses import from_exception, from_result, success_payload
    from .errors import ResolverError
    from .server import build_service

    service = build_service(args)
    try:
        result = asyncio.run(service.resolve(args.url))
    except ResolverError as exc:
        problem = from_exception(exc)
        if args.json:
            print(json.dumps(problem.to_dict(), ensure_ascii=False))
        else:
            print(problem.to_cli_text(), file=sys.stderr)
        return EXIT_FAILED

    problem = from_result(result)
    if problem is None:
        if args.json:
            print(json.dumps(success_payload(result), ensure_ascii=False))
        else:
            print(result.url)
        return EXIT_OK

    if args.json:
        print(json.dumps(problem.to_dict(), ensure_ascii=False))
    else:
        print(problem.to_cli_text(), file=sys.stderr)
    return EXIT_INVALID if result.status is ResolutionStatus.INVALID else EXIT_FAILED


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the server, forwarding any extra args to it."""
    from .server import main

    main(argv=getattr(args, "_server_argv", []))
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve Google News links to publisher article URLs",
        prog="gnews-resolver",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_resolve = subparsers.add_parser(
        "resolve",
        help="Resolve one Google News link",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s https://news.google.com/articles/CBMi...          Print the article URL
  %(prog)s https://news.google.com/articles/CBMi... --json   {"extractedUrl": ...}""",
    )
    p_resolve.add_argument("url", metavar="URL", help="news.google.com article link")
    p_resolve.add_argument("--json", action="store_true", help="Print the JSON API payload instead of a bare URL")
    p_resolve.add_argument("--tables", default="", metavar="PATH", help="Classification tables JSON")
    p_resolve.add_argument("--known-urls", default="", metavar="PATH", help="Known URL table JSON")
    p_resolve.add_argument("--ws-endpoint", default="", metavar="WS", help="Remote CDP browser endpoint")
    p_resolve.add_argument("--headed", action="store_true", help="Show the browser window")
    p_resolve.set_defaults(max_sessions=1)

    subparsers.add_parser(
        "serve",
        help="Start the MCP / HTTP server (extra args forwarded to server)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s                                Start with stdio transport (default)
  %(prog)s --transport http --port 8000   Start HTTP API on port 8000""",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args, remaining = parser.parse_known_args(argv)

    # Forward remaining args to server when using 'serve' command
    if args.command == "serve":
        args._server_argv = remaining
    elif remaining:
        parser.error(f"unrecognized arguments: {' '.join(remaining)}")

    if args.command != "serve":
        from .logging_config import configure

        configure(json_output=False, level="DEBUG" if args.verbose else "WARNING")

    commands = {"resolve": cmd_resolve, "serve": cmd_serve}
    try:
        code = commands[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except SystemExit:
        raise
    except Exception as e:
        from .error_responses import from_exception

        print(from_exception(e).to_cli_text(), file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        sys.exit(EXIT_FAILED)
    sys.exit(code)


if __name__ == "__main__":
    main()
