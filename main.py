"""CLI entrypoint: produce a deck and print it as JSON."""

from __future__ import annotations

import argparse
import asyncio
import logging

from config import get_settings
from core import ProduceOptions
from director import Director
from oracles import build_local_suite
from utils import setup_project_logging


async def _run(args: argparse.Namespace) -> str:
    settings = get_settings()
    suite = build_local_suite() if args.local else None
    director = Director(suite=suite, settings=settings)
    options = ProduceOptions(
        mode=args.mode,
        item_count=args.items,
        style=args.style,
        generate_assets=not args.no_assets,
    )
    try:
        result = await director.produce(args.topic, options)
    finally:
        await director.aclose()
    return result.model_dump_json(indent=2)


def main() -> None:
    parser = argparse.ArgumentParser(description="Deck Director CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    prod = sub.add_parser("produce")
    prod.add_argument("--topic", required=True)
    prod.add_argument("--mode", choices=["fast", "balanced", "premium"], default=None)
    prod.add_argument("--items", type=int, default=None)
    prod.add_argument("--style", default="professional")
    prod.add_argument("--no-assets", action="store_true")
    prod.add_argument("--local", action="store_true", help="use deterministic offline oracles")
    prod.add_argument("--verbose", action="store_true")

    args = parser.parse_args()
    setup_project_logging(logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "produce":
        print(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
