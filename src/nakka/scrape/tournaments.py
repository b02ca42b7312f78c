"""
Tournament discovery by keyword.

The n01 search page has no server-rendered results: the page calls
n01_tournament.php?cmd=get_list and renders the JSON client-side. We load the
search page, capture every get_list response (the page may fire it more than
once), and keep only completed tournaments whose date falls within the last
365 days.

Search payload entries look like:
    {"tdid": "t_Mb5i_9382", "title": "Agawa Cup #12", "status": 40, "t_date": 0}

Usage:
    scraper = TournamentScraper()
    tournaments = await scraper.discover("agawa")
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from urllib.parse import quote

from playwright.async_api import Response

from nakka.scrape.base import BaseScraper, ScrapedTournament
from nakka.scrape.dates import DateResolver, ResultsView
from nakka.scrape.errors import InvalidInput
from nakka.scrape.parsers.dates import is_within_window
from nakka.scrape.parsers.identifiers import tournament_href
from nakka.scrape.session import BrowserSession

logger = logging.getLogger(__name__)

LIST_QUERY_MARKERS = ("n01_tournament.php", "cmd=get_list")


@dataclass
class TournamentCandidate:
    """One entry of the search payload, before date resolution."""

    tdid: str
    title: str
    status: Optional[int]
    t_date: Any = None

    @classmethod
    def from_payload(cls, item: Any) -> Optional["TournamentCandidate"]:
        if not isinstance(item, dict):
            return None
        try:
            status = int(item.get("status"))
        except (TypeError, ValueError):
            status = None
        return cls(
            tdid=str(item.get("tdid") or "").strip(),
            title=str(item.get("title") or "").strip(),
            status=status,
            t_date=item.get("t_date"),
        )


class CandidateBuffer:
    """
    Collects search payloads observed during a single discovery call.

    Owned by the call that created it; nothing is shared between searches.
    listen() is the page's response handler: it schedules the JSON read and
    remembers the task so drain() can wait for late bodies.
    """

    def __init__(self, markers: tuple[str, ...] = LIST_QUERY_MARKERS):
        self.markers = markers
        self.candidates: list[TournamentCandidate] = []
        self._pending: list[asyncio.Future] = []

    def __len__(self) -> int:
        return len(self.candidates)

    def matches(self, url: str) -> bool:
        return all(marker in url for marker in self.markers)

    def add_payload(self, payload: Any) -> int:
        """Append every entry of a list payload; returns how many were added."""
        if not isinstance(payload, list):
            return 0
        added = 0
        for item in payload:
            candidate = TournamentCandidate.from_payload(item)
            if candidate is not None:
                self.candidates.append(candidate)
                added += 1
        return added

    async def observe(self, response: Response) -> None:
        if not self.matches(response.url):
            return
        try:
            payload = await response.json()
        except Exception as e:
            logger.error("Failed to parse API response from %s: %s", response.url, e)
            return
        added = self.add_payload(payload)
        logger.debug("Captured %d tournaments from %s", added, response.url)

    def listen(self, response: Response) -> None:
        if self.matches(response.url):
            self._pending.append(asyncio.ensure_future(self.observe(response)))

    async def drain(self, timeout: Optional[float] = None) -> None:
        """
        Wait for any response bodies still being read.

        Reads still running after `timeout` seconds are cancelled and their
        payloads dropped.
        """
        if not self._pending:
            return
        pending = list(self._pending)
        self._pending.clear()
        _, unfinished = await asyncio.wait(pending, timeout=timeout)
        for task in unfinished:
            task.cancel()
        if unfinished:
            logger.warning("Dropped %d search responses still loading", len(unfinished))
            await asyncio.gather(*unfinished, return_exceptions=True)

    def unique(self) -> list[TournamentCandidate]:
        """Candidates de-duplicated by tdid, first observation wins."""
        seen = set()
        result = []
        for candidate in self.candidates:
            key = candidate.tdid or id(candidate)
            if key in seen:
                continue
            seen.add(key)
            result.append(candidate)
        return result


class TournamentScraper(BaseScraper):
    """
    Finds completed tournaments for a search keyword.

    A tournament that cannot be dated is dropped with a warning; it never
    fails the search for the others.
    """

    def __init__(
        self,
        *args,
        date_resolver: Optional[DateResolver] = None,
        clock: Optional[Callable[[], datetime]] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.date_resolver = date_resolver or DateResolver.from_settings(self.config)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def search_url(self, keyword: str) -> str:
        return f"{self.base_url}/?keyword={quote(keyword, safe='')}"

    async def discover(self, keyword: str) -> list[ScrapedTournament]:
        """
        Search for completed tournaments from the last year.

        Args:
            keyword: Free-text search term (e.g. "agawa")

        Returns:
            ScrapedTournament records; empty when the search yields nothing

        Raises:
            InvalidInput: blank keyword
            ResourceExhausted: the browser died loading the search page
            TransientError: timeouts persisted past the retry ceiling
        """
        if not keyword or not keyword.strip():
            raise InvalidInput("Missing or invalid keyword parameter")
        keyword = keyword.strip()

        return await self.run_in_session(
            lambda session: self.search(session, keyword),
            description=f"Search tournaments for {keyword!r}",
        )

    async def search(self, session: BrowserSession, keyword: str) -> list[ScrapedTournament]:
        """Run one search against an already acquired session."""
        page = session.page
        buffer = CandidateBuffer()
        url = self.search_url(keyword)

        logger.info("Searching tournaments: %s", url)
        page.on("response", buffer.listen)
        try:
            await self.navigate(session, url, timeout=self.config.scrape_navigation_timeout)
            await self.wait_for_network_idle(page)
            await buffer.drain(timeout=self.config.scrape_network_idle_timeout / 1000)
        finally:
            page.remove_listener("response", buffer.listen)

        logger.info("Collected: %d tournaments", len(buffer))
        if not buffer:
            logger.warning("No tournament data intercepted for keyword %r", keyword)
            return []

        return await self.select_completed(session, buffer.unique())

    async def select_completed(
        self,
        session: BrowserSession,
        candidates: list[TournamentCandidate],
    ) -> list[ScrapedTournament]:
        """Keep completed candidates whose resolved date is inside the window."""
        now = self._clock()
        tournaments = []

        for candidate in candidates:
            if not candidate.tdid or candidate.status != self.config.nakka_completed_status:
                continue

            view = ResultsView(session, candidate.tdid, self.config, api_date=candidate.t_date)
            completion_date = await self.date_resolver.resolve(view)
            if completion_date is None:
                logger.warning("Skipping tournament %s: no date could be resolved", candidate.tdid)
                continue
            if not is_within_window(completion_date, now):
                logger.debug(
                    "Skipping tournament %s: %s is outside the last year",
                    candidate.tdid, completion_date.date().isoformat(),
                )
                continue

            tournaments.append(
                ScrapedTournament(
                    identifier=candidate.tdid,
                    name=candidate.title or "Unknown Tournament",
                    source_href=tournament_href(self.base_url, candidate.tdid),
                    completion_date=completion_date,
                )
            )

        logger.info("Filtered to %d completed tournaments", len(tournaments))
        return tournaments


async def scrape_tournaments_by_keyword(keyword: str) -> list[ScrapedTournament]:
    """Convenience wrapper using process settings."""
    return await TournamentScraper().discover(keyword)
