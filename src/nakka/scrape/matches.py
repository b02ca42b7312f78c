"""
Match discovery for a tournament page.

A comp.php page can hold two independent sections:
- #rr_container: round-robin groups. Each result cell is a
  .rr_result.view_button with ttype="rr". Only cells containing an .r_avg
  average were actually played; the rest are scheduled pairings.
- #bracket_container: the knockout bracket. Each slot is a
  .t_item.view_button with ttype="t" and a stage subtitle ("Final", ...).

Every element carries tpid (its player), vstpid (the opponent), round and
subtitle attributes. Player names live under [tpid="<code>"] .entry_name.

Both sections are scanned concurrently against the loaded page. Each scan
de-duplicates by synthesized identifier, first occurrence wins.
"""

import asyncio
import logging
from typing import Optional

from bs4 import BeautifulSoup
from playwright.async_api import Page

from nakka.scrape.base import BaseScraper, ScrapedMatch
from nakka.scrape.errors import InvalidInput
from nakka.scrape.parsers.identifiers import (
    STAGE_KNOCKOUT,
    STAGE_ROUND_ROBIN,
    MatchIdentifier,
    build_match_identifier,
    match_href,
    parse_match_type,
    tournament_id_from_href,
)
from nakka.scrape.session import BrowserSession

logger = logging.getLogger(__name__)

UNKNOWN_PLAYER = "Unknown"

GROUP_CONTAINER = "#rr_container"
GROUP_ELEMENTS = ".rr_result.view_button"
KNOCKOUT_CONTAINER = "#bracket_container"
KNOCKOUT_ELEMENTS = '.t_item.view_button[ttype="t"]'


def _player_name(soup: BeautifulSoup, player_code: str) -> str:
    """Display name for a player code, or the Unknown placeholder."""
    for holder in soup.find_all(attrs={"tpid": player_code}):
        name_el = holder.select_one(".entry_name")
        if name_el:
            name = name_el.get_text(strip=True)
            if name:
                return name
    return UNKNOWN_PLAYER


def _build_match(
    identifier: MatchIdentifier,
    match_type: str,
    names: dict[str, str],
    base_url: str,
) -> ScrapedMatch:
    first_code, second_code = identifier.player_codes
    return ScrapedMatch(
        match_identifier=str(identifier),
        match_type=match_type,
        first_player_name=names.get(first_code) or UNKNOWN_PLAYER,
        first_player_code=first_code,
        second_player_name=names.get(second_code) or UNKNOWN_PLAYER,
        second_player_code=second_code,
        source_href=match_href(base_url, identifier),
    )


def parse_group_matches(html: str, tournament_id: str, base_url: str) -> list[ScrapedMatch]:
    """
    Played round-robin matches from tournament page HTML.

    Elements missing a player code, or without an .r_avg average (not yet
    played), are skipped.
    """
    soup = BeautifulSoup(html or "", "lxml")
    elements = soup.select(GROUP_ELEMENTS)
    logger.info("Found %d potential group match elements", len(elements))

    matches: list[ScrapedMatch] = []
    seen: set[str] = set()

    for element in elements:
        if element.get("ttype") != STAGE_ROUND_ROBIN:
            continue
        tpid = element.get("tpid")
        vstpid = element.get("vstpid")
        if not tpid or not vstpid:
            continue
        if element.select_one(".r_avg") is None:
            continue

        try:
            identifier = build_match_identifier(
                tournament_id, STAGE_ROUND_ROBIN, element.get("round"), tpid, vstpid
            )
        except InvalidInput as e:
            logger.warning("Skipping group match element: %s", e)
            continue

        key = str(identifier)
        if key in seen:
            continue
        seen.add(key)

        names = {tpid: _player_name(soup, tpid), vstpid: _player_name(soup, vstpid)}
        matches.append(
            _build_match(
                identifier,
                parse_match_type(element.get("subtitle"), STAGE_ROUND_ROBIN),
                names,
                base_url,
            )
        )
        logger.debug("Scraped group match: %s", key)

    logger.info("Total group matches scraped: %d", len(matches))
    return matches


def parse_knockout_matches(html: str, tournament_id: str, base_url: str) -> list[ScrapedMatch]:
    """Knockout matches from tournament page HTML."""
    soup = BeautifulSoup(html or "", "lxml")
    elements = soup.select(KNOCKOUT_ELEMENTS)
    logger.info("Found %d potential knockout match elements", len(elements))

    matches: list[ScrapedMatch] = []
    seen: set[str] = set()

    for element in elements:
        tpid = element.get("tpid")
        vstpid = element.get("vstpid")
        if not tpid or not vstpid:
            continue

        try:
            identifier = build_match_identifier(
                tournament_id, STAGE_KNOCKOUT, element.get("round"), tpid, vstpid
            )
        except InvalidInput as e:
            logger.warning("Skipping knockout match element: %s", e)
            continue

        key = str(identifier)
        if key in seen:
            continue
        seen.add(key)

        # The bracket slot renders its own player's name
        own_name_el = element.select_one(".entry_name")
        own_name = own_name_el.get_text(strip=True) if own_name_el else ""
        names = {
            tpid: own_name or _player_name(soup, tpid),
            vstpid: _player_name(soup, vstpid),
        }
        matches.append(
            _build_match(
                identifier,
                parse_match_type(element.get("subtitle"), STAGE_KNOCKOUT),
                names,
                base_url,
            )
        )
        logger.debug("Scraped knockout match: %s", key)

    logger.info("Total knockout matches scraped: %d", len(matches))
    return matches


class MatchScraper(BaseScraper):
    """
    Lists played matches of a tournament.

    Usage:
        scraper = MatchScraper()
        matches = await scraper.scrape("https://n01darts.com/n01/tournament/comp.php?id=t_Mb5i_9382")
    """

    async def scrape(self, tournament_href: str) -> list[ScrapedMatch]:
        """
        Load a tournament page and discover its matches.

        Raises:
            InvalidInput: href without an id parameter (before any browser work)
            ResourceExhausted: the browser died loading the page
            TransientError: timeouts persisted past the retry ceiling
        """
        tournament_id = tournament_id_from_href(tournament_href)
        return await self.run_in_session(
            lambda session: self._load_and_discover(session, tournament_href, tournament_id),
            description=f"Scrape matches for {tournament_id}",
        )

    async def _load_and_discover(
        self,
        session: BrowserSession,
        tournament_href: str,
        tournament_id: str,
    ) -> list[ScrapedMatch]:
        logger.info("Scraping matches from: %s", tournament_href)
        await self.navigate(session, tournament_href, timeout=self.config.scrape_navigation_timeout)
        await self.wait_for_network_idle(session.page)
        return await self.discover(session, tournament_id)

    async def discover(self, session: BrowserSession, tournament_id: str) -> list[ScrapedMatch]:
        """Scan both page sections of an already loaded tournament page."""
        group_matches, knockout_matches = await asyncio.gather(
            self.scan_group_stage(session.page, tournament_id),
            self.scan_knockout_stage(session.page, tournament_id),
        )
        matches = group_matches + knockout_matches
        logger.info("Total matches scraped: %d", len(matches))
        return matches

    async def scan_group_stage(self, page: Page, tournament_id: str) -> list[ScrapedMatch]:
        html = await self._section_html(page, GROUP_CONTAINER)
        if html is None:
            logger.info("No %s found - skipping group matches", GROUP_CONTAINER)
            return []
        return parse_group_matches(html, tournament_id, self.base_url)

    async def scan_knockout_stage(self, page: Page, tournament_id: str) -> list[ScrapedMatch]:
        html = await self._section_html(page, KNOCKOUT_CONTAINER)
        if html is None:
            logger.info("No %s found - skipping knockout matches", KNOCKOUT_CONTAINER)
            return []
        return parse_knockout_matches(html, tournament_id, self.base_url)

    async def _section_html(self, page: Page, container: str) -> Optional[str]:
        """Page HTML if the section's container exists, else None."""
        if await page.query_selector(container) is None:
            return None
        return await page.content()


async def scrape_tournament_matches(tournament_href: str) -> list[ScrapedMatch]:
    """Convenience wrapper using process settings."""
    return await MatchScraper().scrape(tournament_href)
