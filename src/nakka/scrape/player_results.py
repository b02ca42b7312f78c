"""
Per-player statistics for a single match.

The n01_view.html page renders a scoreboard inside <article>. Its stats tab
(#menu_stats) loads a separate document into the #stats_frame iframe; only
once #p1_legs there has text are the numbers final.

The site sometimes serves a bot interstitial first ("Just a moment..."). We
give it a bounded chance to clear before waiting for the real page.

Usage:
    scraper = PlayerResultScraper()
    results = await scraper.scrape(
        "https://n01darts.com/n01/tournament/n01_view.html?tmid=t_Mb5i_9382_rr_2_PA_PB",
        "t_Mb5i_9382_rr_2_PA_PB",
    )
"""

import logging
from typing import Optional

from playwright.async_api import TimeoutError as PlaywrightTimeout

from nakka.scrape.base import BaseScraper, ScrapedPlayerResult
from nakka.scrape.errors import InvalidInput, TransientError, UnexpectedLayout
from nakka.scrape.parsers.identifiers import MatchIdentifier, parse_match_identifier
from nakka.scrape.parsers.stats import build_player_results, parse_stats_frame
from nakka.scrape.retry import RetryPolicy
from nakka.scrape.session import BrowserSession

logger = logging.getLogger(__name__)

# The match view needs very little screen
MATCH_VIEWPORT = (480, 320)

INTERSTITIAL_MARKERS = ("Just a moment", "Cloudflare")

STATS_READY_JS = """
() => {
  const iframe = document.querySelector('#stats_frame');
  if (!iframe || !iframe.contentDocument) return false;
  const legs = iframe.contentDocument.querySelector('#p1_legs');
  return !!(legs && legs.textContent && legs.textContent.trim() !== '');
}
"""

POST_NAVIGATION_SETTLE_MS = 1000
POST_CLICK_SETTLE_MS = 500


class PlayerResultScraper(BaseScraper):
    """Extracts both players' statistics from a match page."""

    async def scrape(
        self,
        match_href: str,
        match_identifier: str,
        max_attempts: Optional[int] = None,
    ) -> list[ScrapedPlayerResult]:
        """
        Scrape a match's statistics, retrying transient failures.

        Args:
            match_href: Absolute URL of the match view
            match_identifier: Synthesized identifier of the match
            max_attempts: Override the retry ceiling for this call

        Returns:
            Two results, lower player code first

        Raises:
            InvalidInput: malformed identifier or URL (no browser is launched)
            UnexpectedLayout: the stats frame did not show two players
            ResourceExhausted: the browser died loading the page
            TransientError: timeouts persisted past the retry ceiling
        """
        identifier = parse_match_identifier(match_identifier)
        if not match_href or not match_href.startswith(("http://", "https://")):
            raise InvalidInput(f"Invalid match URL: {match_href!r}")

        policy = None
        if max_attempts is not None:
            policy = RetryPolicy(
                max_attempts=max_attempts,
                base_delay=self.retry_policy.base_delay,
                jitter=self.retry_policy.jitter,
                should_retry=self.retry_policy.should_retry,
            )

        return await self.run_in_session(
            lambda session: self.extract(session, match_href, identifier),
            description=f"Scrape results for {identifier}",
            profile=self.profile.with_viewport(*MATCH_VIEWPORT),
            retry_policy=policy,
        )

    async def extract(
        self,
        session: BrowserSession,
        match_href: str,
        identifier: MatchIdentifier,
    ) -> list[ScrapedPlayerResult]:
        """Run one extraction against an already acquired session."""
        page = session.page
        selector_timeout = self.config.scrape_selector_timeout

        logger.info("Scraping player results from: %s", match_href)
        await self.navigate(
            session, match_href, timeout=self.config.scrape_match_navigation_timeout
        )
        await self.settle(page, POST_NAVIGATION_SETTLE_MS)

        await self._wait_out_interstitial(session)

        await page.wait_for_selector("article", timeout=selector_timeout)
        session.ensure_alive("waiting for article")

        await page.wait_for_selector("#menu_stats", timeout=selector_timeout, state="visible")
        await page.click("#menu_stats", force=True)
        await self.settle(page, POST_CLICK_SETTLE_MS)
        session.ensure_alive("after clicking stats")

        await page.wait_for_selector("#stats_frame", timeout=selector_timeout)
        await page.frame_locator("#stats_frame").locator(".stats_table").wait_for(
            timeout=selector_timeout
        )
        session.ensure_alive("waiting for stats frame")
        await page.wait_for_function(STATS_READY_JS, timeout=selector_timeout)

        logger.info("Stats loaded, extracting data...")
        frame = parse_stats_frame(await self._stats_frame_html(session))

        if len(frame.player_names) != 2:
            raise UnexpectedLayout(
                f"Expected 2 player names, found {len(frame.player_names)}"
            )

        results = build_player_results(identifier, frame)
        logger.info("Successfully scraped results for %d players", len(results))
        return results

    async def _wait_out_interstitial(self, session: BrowserSession) -> None:
        page = session.page
        try:
            title = await page.title()
        except Exception as e:
            logger.debug("Could not read page title: %s", e)
            return
        if not any(marker in (title or "") for marker in INTERSTITIAL_MARKERS):
            return

        logger.info("Bot challenge detected, waiting for it to clear...")
        try:
            await page.wait_for_selector(
                "article", timeout=self.config.scrape_interstitial_timeout
            )
        except PlaywrightTimeout:
            logger.warning("Bot challenge may not have cleared")

    async def _stats_frame_html(self, session: BrowserSession) -> str:
        handle = await session.page.query_selector("#stats_frame")
        frame = await handle.content_frame() if handle else None
        if frame is None:
            session.ensure_alive("reading stats frame")
            raise TransientError("Stats frame has no document")
        return await frame.content()


async def scrape_match_player_results(
    match_href: str,
    match_identifier: str,
    max_attempts: int = 3,
) -> list[ScrapedPlayerResult]:
    """Convenience wrapper using process settings."""
    return await PlayerResultScraper().scrape(
        match_href, match_identifier, max_attempts=max_attempts
    )
