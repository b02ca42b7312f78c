#!/usr/bin/env python3
"""
Nakka Scrape Script.

Runs one scrape operation against n01darts.com and prints the records as
JSON, or serves the HTTP API.

Usage:
    python scripts/scrape_nakka.py tournaments agawa
    python scripts/scrape_nakka.py matches "https://n01darts.com/n01/tournament/comp.php?id=t_Mb5i_9382"
    python scripts/scrape_nakka.py player-results HREF t_Mb5i_9382_rr_2_PA_PB --max-attempts 2
    python scripts/scrape_nakka.py --constrained tournaments agawa
    python scripts/scrape_nakka.py serve
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from nakka.config import settings
from nakka.scrape.errors import ScrapeError
from nakka.scrape.matches import scrape_tournament_matches
from nakka.scrape.player_results import scrape_match_player_results
from nakka.scrape.tournaments import scrape_tournaments_by_keyword

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_command(args: argparse.Namespace) -> list:
    if args.command == "tournaments":
        return await scrape_tournaments_by_keyword(args.keyword)
    if args.command == "matches":
        return await scrape_tournament_matches(args.tournament_href)
    if args.command == "player-results":
        return await scrape_match_player_results(
            args.match_href,
            args.match_identifier,
            max_attempts=args.max_attempts,
        )
    raise ValueError(f"Unknown command: {args.command}")


def serve() -> None:
    import uvicorn

    uvicorn.run(
        "nakka.web.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Scrape tournaments, matches and player statistics from n01darts.com",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--constrained",
        action="store_true",
        help="Use the memory-constrained browser posture",
    )
    parser.add_argument(
        "--visible",
        action="store_true",
        help="Show the browser window (local posture only)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    tournaments = subparsers.add_parser("tournaments", help="Completed tournaments by keyword")
    tournaments.add_argument("keyword", help="Search keyword (e.g. agawa)")

    matches = subparsers.add_parser("matches", help="Played matches of a tournament")
    matches.add_argument("tournament_href", help="Tournament URL (comp.php?id=...)")

    results = subparsers.add_parser("player-results", help="Player statistics of one match")
    results.add_argument("match_href", help="Match URL (n01_view.html?tmid=...)")
    results.add_argument("match_identifier", help="Synthesized match identifier")
    results.add_argument(
        "--max-attempts",
        type=int,
        default=settings.scrape_max_retries,
        help=f"Retry ceiling for transient failures (default: {settings.scrape_max_retries})",
    )

    subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")

    args = parser.parse_args()

    if args.constrained:
        settings.scrape_constrained = True
    if args.visible:
        settings.scrape_headless = False

    if args.command == "serve":
        serve()
        return 0

    try:
        records = asyncio.run(run_command(args))
    except ScrapeError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    print(json.dumps([record.to_dict() for record in records], indent=2))
    logger.info("Scraped %d records", len(records))
    return 0


if __name__ == "__main__":
    sys.exit(main())
