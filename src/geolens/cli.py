"""geolens CLI - one-shot lookups printed as JSON.

Usage:
  geolens search "tallest building in Europe"
  geolens at 48.8566 2.3522
  geolens nearby 35.68 139.69
  geolens news "Lisbon" --exclude "Lisbon opens new bridge"
  geolens route https://example.com/travel-diary
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Optional

from geolens.config import GeoLensConfig, load_config
from geolens.llm.base import create_client
from geolens.orchestrator import GeoOrchestrator


def _dump(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value.model_dump(by_alias=True, mode="json")


async def _run(args: argparse.Namespace, config: GeoLensConfig) -> Any:
    orchestrator = GeoOrchestrator(create_client("gemini", config=config), config=config)

    if args.command == "search":
        return await orchestrator.resolve_by_query(args.query)
    if args.command == "at":
        return await orchestrator.resolve_by_coordinates(args.lat, args.lng)
    if args.command == "nearby":
        return await orchestrator.nearby_places(args.lat, args.lng)
    if args.command == "news":
        return await orchestrator.live_news(args.query, exclude=args.exclude or [])
    if args.command == "route":
        return await orchestrator.extract_route_result(args.source)
    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geolens",
        description="Geographic lookups backed by Gemini",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--model", default=None, help="Model name (default: GEOLENS_MODEL or gemini-2.5-flash)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("search", help="Resolve a free-text query to a location")
    p.add_argument("query")

    p = sub.add_parser("at", help="Describe the feature at coordinates")
    p.add_argument("lat", type=float)
    p.add_argument("lng", type=float)

    p = sub.add_parser("nearby", help="List places near coordinates")
    p.add_argument("lat", type=float)
    p.add_argument("lng", type=float)

    p = sub.add_parser("news", help="Live news for a place")
    p.add_argument("query")
    p.add_argument("--exclude", action="append", metavar="HEADLINE", help="Headline to skip (repeatable)")

    p = sub.add_parser("route", help="Extract an ordered route from text or a URL")
    p.add_argument("source")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    if args.model:
        config = replace(config, model=args.model)
    if not config.api_key:
        print("error: set GEMINI_API_KEY (or GEOLENS_GEMINI_API_KEY)", file=sys.stderr)
        return 1

    result = asyncio.run(_run(args, config))
    print(json.dumps(_dump(result), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
