"""Command-line interface for the Arke MCP server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import get_settings
from .server import create_server, create_tools
from .tools import ArkeTools, ToolResult

logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "http", "sse")


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    p = argparse.ArgumentParser(
        prog="arke-mcp",
        description="Arke Institute archive search over the Model Context Protocol.",
    )
    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    # --- serve ---
    serve = sub.add_parser("serve", help="Run the MCP server")
    serve.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default="stdio",
        help="MCP transport (default: stdio)",
    )
    serve.add_argument("--host", default="127.0.0.1", help="Bind address for http/sse")
    serve.add_argument("--port", type=int, default=8000, help="Port for http/sse")

    # --- search ---
    search = sub.add_parser("search", help="Run one search and print the result")
    search.add_argument("query", help="Natural language query")
    search.add_argument("--top-k", type=int, default=None, help="Number of results")
    search.add_argument(
        "--namespace",
        action="append",
        dest="namespaces",
        default=None,
        help="Restrict to an entity type (repeatable)",
    )
    search.add_argument(
        "--full",
        action="store_true",
        help="Print complete JSON for each result",
    )

    # --- entities ---
    entities = sub.add_parser("entities", help="Print full entity data for PIs")
    entities.add_argument("pis", nargs="+", help="Persistent Identifiers")

    # --- ocr ---
    ocr = sub.add_parser("ocr", help="Extract text from digital objects")
    ocr.add_argument("pis", nargs="+", help="One PI, or several for a batch")
    ocr.add_argument(
        "--force",
        action="store_true",
        help="Reprocess even if cached text exists",
    )

    return p


def _configure_logging(verbose: bool) -> None:
    """Set up root logging on stderr; stdout stays free for the stdio transport."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


async def _run_tool(tools: ArkeTools, args: argparse.Namespace) -> ToolResult:
    if args.cmd == "search":
        return await tools.search_arke(
            args.query, args.top_k, args.namespaces, verbose=args.full
        )
    if args.cmd == "entities":
        return await tools.get_arke_entities(args.pis)
    if len(args.pis) == 1:
        return await tools.extract_text_ocr(pi=args.pis[0], force_reprocess=args.force)
    return await tools.extract_text_ocr(pis=args.pis, force_reprocess=args.force)


async def _one_shot(args: argparse.Namespace) -> ToolResult:
    tools = await create_tools(get_settings())
    return await _run_tool(tools, args)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    if args.cmd == "serve":
        mcp = asyncio.run(create_server(get_settings()))
        if args.transport == "stdio":
            mcp.run(transport="stdio")
        else:
            mcp.run(transport=args.transport, host=args.host, port=args.port)
        return 0

    if args.cmd in ("search", "entities", "ocr"):
        result = asyncio.run(_one_shot(args))
        print(result.text)
        if result.is_error:
            logger.error("%s failed", args.cmd)
            return 1
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
