"""
Tournament completion-date resolution.

The search payload cannot be trusted for dates, so each completed tournament
is dated by an ordered chain of independent strategies. A strategy either
returns a UTC-midnight datetime or None; the next one only runs when the
previous found nothing.

Default order:
1. HistoryApiStrategy      - match history API fetched from inside the page
2. MarkupDateStrategy      - timestamp regex over the results tab markup
3. DynamicContentStrategy  - wait for rendered match titles, then query them
4. PageTitleStrategy       - date in the results tab's <title>

ApiFieldDateStrategy (the search payload's numeric t_date) can be put in
front of the chain via settings.scrape_trust_api_date.

Strategies 2-4 share one ResultsView, which navigates to the results tab at
most once per tournament.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional, Sequence
from urllib.parse import urlencode

from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

from nakka.config import Settings, settings as default_settings
from nakka.scrape.errors import WAYPOINT_LOADED, WAYPOINT_NAVIGATION, ResourceExhausted
from nakka.scrape.parsers.dates import (
    epoch_to_utc_date,
    find_markup_date,
    find_match_title_date,
    find_title_date,
    parse_history_payload,
)
from nakka.scrape.session import BrowserSession

logger = logging.getLogger(__name__)

# Runs inside the page so the request carries the site's own origin/cookies.
HISTORY_FETCH_JS = """
async ({ url, timeout }) => {
  try {
    const res = await fetch(url, { signal: AbortSignal.timeout(timeout) });
    const data = await res.json();
    return { success: true, data };
  } catch (error) {
    return { success: false, error: String(error) };
  }
}
"""

TIMESTAMP_RENDERED_JS = r"""
() => {
  const pattern = /\d{2}\/\d{2}\/\d{4}\s+\d{2}:\d{2}:\d{2}/;
  const elements = document.querySelectorAll('div, span, td');
  for (let i = 0; i < elements.length; i++) {
    const text = elements[i].textContent && elements[i].textContent.trim();
    if (text && pattern.test(text)) {
      return true;
    }
  }
  return false;
}
"""


class ResultsView:
    """
    Per-tournament context handed to every date strategy.

    Holds the session, the tournament code and anything the search payload
    said about it. open() lazily loads the results tab once; a failed load is
    remembered so later strategies fail fast instead of waiting again.
    """

    def __init__(
        self,
        session: BrowserSession,
        tournament_id: str,
        config: Optional[Settings] = None,
        api_date: Any = None,
    ):
        self.session = session
        self.tournament_id = tournament_id
        self.config = config or default_settings
        self.api_date = api_date
        self._opened = False
        self._open_error: Optional[BaseException] = None

    @property
    def page(self) -> Page:
        return self.session.page

    @property
    def url(self) -> str:
        return f"{self.config.nakka_base_url}/comp.php?id={self.tournament_id}&tab=history"

    async def open(self) -> Page:
        """Navigate to the results tab (once) and return the page."""
        if self._opened:
            return self.page
        if self._open_error is not None:
            raise self._open_error

        logger.info("Navigating to Results tab: %s", self.url)
        try:
            self.session.mark(WAYPOINT_NAVIGATION)
            await self.page.goto(
                self.url,
                wait_until="networkidle",
                timeout=self.config.scrape_match_navigation_timeout,
            )
            self.session.ensure_alive("opening the results tab")
            self.session.mark(WAYPOINT_LOADED)
            # Match rows keep arriving after the network goes quiet
            await self.page.wait_for_timeout(self.config.scrape_results_settle_ms)
        except Exception as e:
            self._open_error = e
            raise

        self._opened = True
        return self.page


class DateStrategy:
    """A single way of finding a tournament's date."""

    name = "strategy"

    async def resolve(self, view: ResultsView) -> Optional[datetime]:
        raise NotImplementedError


class ApiFieldDateStrategy(DateStrategy):
    """Numeric t_date from the search payload (epoch seconds)."""

    name = "api-field"

    async def resolve(self, view: ResultsView) -> Optional[datetime]:
        return epoch_to_utc_date(view.api_date)


class HistoryApiStrategy(DateStrategy):
    """Newest match startTime from the history API, minus 4 hours."""

    name = "history-api"
    # Extra wait beyond the in-page abort before giving up on the page itself
    grace_seconds = 2.0

    def history_url(self, view: ResultsView) -> str:
        query = urlencode(
            {
                "cmd": "get_t_list",
                "tdid": view.tournament_id,
                "skip": 0,
                "count": 30,
                "name": "",
            }
        )
        return f"{view.config.nakka_history_api_url}?{query}"

    async def resolve(self, view: ResultsView) -> Optional[datetime]:
        timeout_ms = view.config.scrape_history_timeout
        url = self.history_url(view)
        # The in-page abort covers the fetch; the outer bound covers a stuck page
        try:
            response = await asyncio.wait_for(
                view.page.evaluate(HISTORY_FETCH_JS, {"url": url, "timeout": timeout_ms}),
                timeout=timeout_ms / 1000 + self.grace_seconds,
            )
        except asyncio.TimeoutError:
            logger.info("History API call for %s timed out", view.tournament_id)
            return None
        if not isinstance(response, dict) or not response.get("success"):
            error = response.get("error") if isinstance(response, dict) else response
            logger.debug("History API call failed for %s: %s", view.tournament_id, error)
            return None
        return parse_history_payload(response.get("data"))


class MarkupDateStrategy(DateStrategy):
    """First 'DD/MM/YYYY HH:MM:SS' (or dotted) timestamp in the raw HTML."""

    name = "markup"

    async def resolve(self, view: ResultsView) -> Optional[datetime]:
        page = await view.open()
        return find_markup_date(await page.content())


class DynamicContentStrategy(DateStrategy):
    """Wait for client-rendered match titles, then read the first one."""

    name = "dynamic-content"

    async def resolve(self, view: ResultsView) -> Optional[datetime]:
        page = await view.open()
        try:
            await page.wait_for_function(
                TIMESTAMP_RENDERED_JS,
                timeout=view.config.scrape_content_wait_timeout,
            )
        except PlaywrightTimeout:
            logger.info(
                "Match list for %s never populated; results may not be recorded yet",
                view.tournament_id,
            )
        return find_match_title_date(await page.content())


class PageTitleStrategy(DateStrategy):
    """'DD.MM.YYYY' inside document.title, as a last resort."""

    name = "page-title"

    async def resolve(self, view: ResultsView) -> Optional[datetime]:
        page = await view.open()
        return find_title_date(await page.title())


DEFAULT_STRATEGIES = (
    HistoryApiStrategy,
    MarkupDateStrategy,
    DynamicContentStrategy,
    PageTitleStrategy,
)


class DateResolver:
    """
    Tries date strategies in fixed priority order.

    A strategy that raises is treated as having found nothing, so one broken
    source never hides the others. The exceptions are a dead browser
    (ResourceExhausted, or the page having closed underneath us), which
    propagate because no later strategy could succeed either.
    """

    def __init__(self, strategies: Sequence[DateStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "DateResolver":
        config = config or default_settings
        strategies: list[DateStrategy] = [strategy() for strategy in DEFAULT_STRATEGIES]
        if config.scrape_trust_api_date:
            strategies.insert(0, ApiFieldDateStrategy())
        return cls(strategies)

    async def resolve(self, view: ResultsView) -> Optional[datetime]:
        for strategy in self.strategies:
            try:
                resolved = await strategy.resolve(view)
            except ResourceExhausted:
                raise
            except Exception as e:
                if not view.session.is_alive():
                    raise
                logger.debug(
                    "Date strategy %s failed for %s: %s",
                    strategy.name, view.tournament_id, e,
                )
                continue

            if resolved is not None:
                logger.info(
                    "Dated tournament %s as %s (via %s)",
                    view.tournament_id, resolved.date().isoformat(), strategy.name,
                )
                return resolved
            logger.debug("Date strategy %s found nothing for %s", strategy.name, view.tournament_id)

        logger.warning("No valid date found for tournament %s", view.tournament_id)
        return None
