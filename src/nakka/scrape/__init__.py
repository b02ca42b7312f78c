"""
Web scraping module for nakka.

Everything is collected from the n01 darts tournament site (n01darts.com):
- Tournament search results, dated and filtered to the last year
- Played matches of a tournament (round-robin groups and knockout bracket)
- Per-player statistics of a single match

Key components:
- SessionManager: Launches one stealth Chromium session per attempt
- RetryPolicy: Exponential backoff for transient failures only
- TournamentScraper: Keyword search with the completion-date strategy chain
- MatchScraper: Concurrent group and knockout scans of a tournament page
- PlayerResultScraper: Stats frame extraction for one match

The scraping architecture uses:
- Playwright for browser automation (the site renders client-side)
- BeautifulSoup for HTML parsing
- Async/await for concurrent operations
"""

from nakka.scrape.base import (
    BaseScraper,
    ScrapedMatch,
    ScrapedPlayerResult,
    ScrapedTournament,
)
from nakka.scrape.errors import (
    InvalidInput,
    ResourceExhausted,
    ScrapeError,
    TransientError,
    UnexpectedLayout,
)
from nakka.scrape.matches import MatchScraper, scrape_tournament_matches
from nakka.scrape.player_results import PlayerResultScraper, scrape_match_player_results
from nakka.scrape.retry import RetryPolicy
from nakka.scrape.session import SessionManager, SessionProfile, profile_for_environment
from nakka.scrape.tournaments import TournamentScraper, scrape_tournaments_by_keyword

__all__ = [
    "BaseScraper",
    "ScrapedTournament",
    "ScrapedMatch",
    "ScrapedPlayerResult",
    "ScrapeError",
    "InvalidInput",
    "UnexpectedLayout",
    "TransientError",
    "ResourceExhausted",
    "RetryPolicy",
    "SessionManager",
    "SessionProfile",
    "profile_for_environment",
    "TournamentScraper",
    "MatchScraper",
    "PlayerResultScraper",
    "scrape_tournaments_by_keyword",
    "scrape_tournament_matches",
    "scrape_match_player_results",
]
