"""Command-line interface for searching the card catalog."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from typing import Any

import orjson

from card_search.controller import SearchController, SearchLimits
from card_search.models import KNOWN_SETS
from card_search.page_source import CardApiClient, CardPageSource

logger = logging.getLogger(__name__)


def _write_json(data: Any) -> None:
    sys.stdout.write(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())
    sys.stdout.write("\n")


def build_controller(api_url: str | None = None) -> SearchController:
    """Create a controller talking to the real catalog, without debouncing.

    Args:
    ----
        api_url: Catalog base URL; defaults to the configured one

    Returns:
    -------
        A ready controller

    """
    limits = dataclasses.replace(SearchLimits.from_settings(), debounce_seconds=0)
    return SearchController(CardPageSource(CardApiClient(api_url=api_url)), limits=limits)


async def run_search(controller: SearchController, query: str, set_filter: str | None, more: int) -> dict[str, Any]:
    """Run one search and up to ``more`` follow-up batches.

    Returns
    -------
        The final state as a JSON-ready dict

    """
    await controller.submit_query(query, set_filter)
    for _ in range(more):
        task = controller.load_more()
        if task is None:
            break
        await task

    state = controller.state
    return {
        "query": state.query,
        "set": state.set_filter,
        "count": len(state.results),
        "can_load_more": state.can_load_more,
        "error": state.error,
        "results": [card.as_dict() for card in state.results],
    }


async def lookup_card(controller: SearchController, card_key: str, set_filter: str | None) -> dict[str, Any] | None:
    """Resolve a single card by key."""
    card = await controller.resolve_item(set_filter or "", card_key, controller.current_token)
    return None if card is None else card.as_dict()


async def _search_command(args: argparse.Namespace) -> int:
    async with build_controller(args.api_url) as controller:
        output = await run_search(controller, args.query, args.set, args.more)
    _write_json(output)
    if output["error"]:
        logger.error(output["error"])
        return 1
    return 0


async def _card_command(args: argparse.Namespace) -> int:
    async with build_controller(args.api_url) as controller:
        card = await lookup_card(controller, args.card_key, args.set)
    if card is None:
        logger.warning("Card %s not found", args.card_key)
        return 1
    _write_json(card)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Returns
    -------
        Exit code (0 for success, 1 for failure)

    """
    parser = argparse.ArgumentParser(
        description="Search the card catalog by name, one set at a time",
    )
    parser.add_argument(
        "--api-url",
        help="Catalog base URL (default: $CARD_SEARCH_API_URL)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("list-sets", help="List the known sets, newest first")

    search_parser = subparsers.add_parser("search", help="Search card names")
    search_parser.add_argument("query", help="Text to look for in card names (e.g. Luffy)")
    search_parser.add_argument("--set", "-s", help="Only search this set (e.g. OP-08)")
    search_parser.add_argument(
        "--more",
        "-m",
        type=int,
        default=0,
        help="Number of extra batches to load after the first (default: 0)",
    )

    card_parser = subparsers.add_parser("card", help="Look up one card by number")
    card_parser.add_argument("card_key", help="Card number (e.g. OP08-001)")
    card_parser.add_argument("--set", "-s", help="Set the card belongs to")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "list-sets":
        _write_json([{"code": s.code, "name": s.name} for s in KNOWN_SETS])
        return 0

    if args.command == "search":
        return asyncio.run(_search_command(args))

    return asyncio.run(_card_command(args))
