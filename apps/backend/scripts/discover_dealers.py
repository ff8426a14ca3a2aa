#!/usr/bin/env python3
"""
Dealer Discovery CLI

Runs dealer discovery for one or more regions and prints the suggested
dealers (or writes them as JSON) for manual review before they are added to
the directory.

Pipeline per region:
1. Localized discovery query for the seller type and language
2. One text search (at most 10 results)
3. AI suggestion extraction, skipping domains already in the directory

Usage:
    python scripts/discover_dealers.py --regions france --language fr
    python scripts/discover_dealers.py --regions "uk,germany" --seller-type gallery --output dealers.json
    python scripts/discover_dealers.py --list-options
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from config import ResearchSettings
from exceptions import ParsingError
from observability import setup_logging
from research.discovery import DealerDiscovery, discovery_options
from research.extraction import StructuredExtractor
from research.models import DiscoveryRequest, DiscoveryResponse
from research.providers import build_text_provider
from services.dealers import get_dealer_directory
from services.llm import LLMClient

logger = logging.getLogger("discover_dealers")


async def run_discovery(
    regions: List[str],
    seller_type: str,
    language: str,
    max_results: int,
    output: Optional[Path],
) -> int:
    settings = ResearchSettings.from_env()
    discovery = DealerDiscovery(
        build_text_provider(settings),
        get_dealer_directory(),
        StructuredExtractor(LLMClient(settings)),
    )

    responses: List[DiscoveryResponse] = []
    failures = 0
    for region in regions:
        request = DiscoveryRequest(region=region, seller_type=seller_type, language=language, max_results=max_results)
        try:
            response = await discovery.discover(request)
        except ParsingError as e:
            logger.error(f"[{region}] Could not parse dealer suggestions: {e.message}")
            failures += 1
            continue

        responses.append(response)
        if response.error:
            logger.error(f"[{region}] {response.error}")
            failures += 1
            continue

        logger.info(
            f"[{region}] query={response.query!r} results={response.total_search_results} "
            f"suggestions={len(response.suggestions)} credits={response.credits_used}"
        )
        for s in response.suggestions:
            print(f"  {s.confidence:3d}  {s.name:40s} {s.domain:30s} {s.type}")

    if output:
        output.write_text(json.dumps([r.model_dump() for r in responses], indent=2, ensure_ascii=False))
        logger.info(f"Wrote {len(responses)} responses to {output}")

    total = sum(len(r.suggestions) for r in responses)
    credits = sum(r.credits_used for r in responses)
    logger.info(f"DONE. suggestions={total} credits={credits} failed_regions={failures}")
    return 1 if failures and not total else 0


def main():
    parser = argparse.ArgumentParser(description="Discover new poster dealers via web search + AI extraction")
    parser.add_argument("--regions", type=str, help="Comma-separated region keys (e.g. france,uk)")
    parser.add_argument("--seller-type", type=str, default="poster_dealer", help="Seller type to look for")
    parser.add_argument("--language", type=str, default="en", help="Query language (en, fr, de, it, es, nl, ja, zh)")
    parser.add_argument("--max-results", type=int, default=10, help="Search results per region (max 10)")
    parser.add_argument("--output", type=Path, help="Write responses as JSON to this file")
    parser.add_argument("--list-options", action="store_true", help="List regions, seller types and languages")
    args = parser.parse_args()

    if args.list_options:
        for group, choices in discovery_options().items():
            print(f"{group}:")
            for choice in choices:
                print(f"  {choice['value']:20s} {choice['label']}")
        return

    if not args.regions:
        parser.error("Specify --regions or --list-options")

    setup_logging()
    regions = [r.strip() for r in args.regions.split(",") if r.strip()]
    sys.exit(asyncio.run(run_discovery(regions, args.seller_type, args.language, args.max_results, args.output)))


if __name__ == "__main__":
    main()
