"""
Base scraper class and common data structures.

Provides the foundation for the three n01 scrapers (tournaments, matches,
player results). Uses Playwright for browser automation because the site
renders everything client-side and hides its data behind XHR calls and an
embedded stats frame.

Key features:
- One fresh browser session per attempt, always released
- Retry with exponential backoff, but only for transient failures
- Raw Playwright errors translated into the scrape error taxonomy
- Standardized record dataclasses handed back to the caller
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

from nakka.config import Settings, settings as default_settings
from nakka.scrape.errors import (
    WAYPOINT_LOADED,
    WAYPOINT_NAVIGATION,
    ScrapeError,
    translate_error,
)
from nakka.scrape.retry import RetryPolicy
from nakka.scrape.session import (
    BrowserSession,
    SessionManager,
    SessionProfile,
    profile_for_environment,
)

logger = logging.getLogger(__name__)


@dataclass
class ScrapedTournament:
    """
    A completed tournament found by keyword search.

    completion_date is timezone-aware, at UTC midnight.
    """

    identifier: str
    name: str
    source_href: str
    completion_date: datetime
    status: str = "completed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "nakka_identifier": self.identifier,
            "tournament_name": self.name,
            "href": self.source_href,
            "tournament_date": self.completion_date.isoformat(),
            "status": self.status,
        }

    def __repr__(self) -> str:
        return (
            f"<ScrapedTournament({self.identifier}, {self.name!r}, "
            f"{self.completion_date.date().isoformat()})>"
        )


@dataclass
class ScrapedMatch:
    """
    A played match discovered on a tournament page.

    first_player_code is always the lexicographically lower code, and
    first_player_name belongs to it.
    """

    match_identifier: str
    match_type: str  # 'rr', 't_<subtitle>' or 't_unknown'
    first_player_name: str
    first_player_code: str
    second_player_name: str
    second_player_code: str
    source_href: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "nakka_match_identifier": self.match_identifier,
            "match_type": self.match_type,
            "first_player_name": self.first_player_name,
            "first_player_code": self.first_player_code,
            "second_player_name": self.second_player_name,
            "second_player_code": self.second_player_code,
            "href": self.source_href,
        }

    def __repr__(self) -> str:
        return (
            f"<ScrapedMatch({self.first_player_name} vs {self.second_player_name}, "
            f"{self.match_identifier})>"
        )


@dataclass
class ScrapedPlayerResult:
    """
    One player's statistics for one match.

    Continuous metrics are None when the page did not provide them; counts
    default to 0.
    """

    player_match_identifier: str

    # Continuous metrics
    average_score: Optional[float] = None
    first_nine_average: Optional[float] = None
    checkout_percentage: Optional[float] = None

    # Score bands (visits scoring at least N)
    score_60_count: int = 0
    score_100_count: int = 0
    score_140_count: int = 0
    score_180_count: int = 0

    high_finish: int = 0
    best_leg: int = 0  # darts thrown in the player's quickest leg
    worst_leg: int = 0
    legs_won: int = 0
    legs_lost: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "nakka_match_player_identifier": self.player_match_identifier,
            "average_score": self.average_score,
            "first_nine_avg": self.first_nine_average,
            "checkout_percentage": self.checkout_percentage,
            "score_60_count": self.score_60_count,
            "score_100_count": self.score_100_count,
            "score_140_count": self.score_140_count,
            "score_180_count": self.score_180_count,
            "high_finish": self.high_finish,
            "best_leg": self.best_leg,
            "worst_leg": self.worst_leg,
            "player_score": self.legs_won,
            "opponent_score": self.legs_lost,
        }


class BaseScraper:
    """
    Common session, retry and navigation handling for n01 scrapers.

    Every public scrape goes through run_in_session(): each attempt gets a
    freshly launched browser, raw errors are translated into the scrape
    taxonomy, the browser is released before the retry policy decides what
    happens next, and only TransientError is ever retried.

    Usage:
        scraper = TournamentScraper()
        tournaments = await scraper.discover("agawa")
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        session_manager: Optional[SessionManager] = None,
        profile: Optional[SessionProfile] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize the scraper.

        Args:
            config: Settings to use (defaults to the process-wide settings)
            session_manager: Launches and releases browsers
            profile: Browser posture; derived from the environment if None
            retry_policy: Retry ceiling/backoff; derived from settings if None
        """
        self.config = config or default_settings
        self.session_manager = session_manager or SessionManager()
        self.profile = profile or profile_for_environment(self.config)
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.config.scrape_max_retries,
            base_delay=self.config.scrape_retry_base_delay,
        )

    @property
    def base_url(self) -> str:
        return self.config.nakka_base_url

    async def run_in_session(
        self,
        operation: Callable[[BrowserSession], Awaitable[Any]],
        description: str,
        profile: Optional[SessionProfile] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> Any:
        """
        Run an operation against a fresh session under the retry policy.

        Args:
            operation: Async callable receiving the session
            description: Label for log messages
            profile: Override the scraper's browser posture
            retry_policy: Override the scraper's retry policy

        Returns:
            Whatever the operation returns
        """
        profile = profile or self.profile
        policy = retry_policy or self.retry_policy

        async def attempt():
            session = await self.session_manager.acquire(profile)
            try:
                return await operation(session)
            except ScrapeError:
                raise
            except Exception as e:
                raise translate_error(e, session.waypoint) from e
            finally:
                await self.session_manager.release(session)

        return await policy.run(attempt, description=description)

    async def navigate(
        self,
        session: BrowserSession,
        url: str,
        wait_until: str = "domcontentloaded",
        timeout: Optional[int] = None,
    ) -> None:
        """
        Navigate the session's page and record the waypoints around it.

        A page that is gone right after goto() returns means the browser was
        killed for memory, which is raised as ResourceExhausted.
        """
        session.mark(WAYPOINT_NAVIGATION)
        await session.page.goto(
            url,
            wait_until=wait_until,
            timeout=timeout or self.config.scrape_navigation_timeout,
        )
        session.ensure_alive("navigating")
        session.mark(WAYPOINT_LOADED)

    async def wait_for_network_idle(self, page: Page, timeout: Optional[int] = None) -> None:
        """Bounded quiescence wait; carries on if the network never settles."""
        try:
            await page.wait_for_load_state(
                "networkidle",
                timeout=timeout or self.config.scrape_network_idle_timeout,
            )
        except PlaywrightTimeout:
            logger.info("Network didn't go idle, continuing...")

    async def settle(self, page: Page, milliseconds: int) -> None:
        """Short fixed pause for the DOM to catch up after an interaction."""
        if milliseconds <= 0:
            return
        await page.wait_for_timeout(milliseconds)
