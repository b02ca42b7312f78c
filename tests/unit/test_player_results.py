"""Unit tests for match statistics extraction."""

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from conftest import FakePage, FakeSessionManager
from nakka.scrape.errors import InvalidInput, ResourceExhausted, TransientError, UnexpectedLayout
from nakka.scrape.player_results import PlayerResultScraper

MATCH_ID = "t_Mb5i_9382_rr_2_PA_PB"
MATCH_HREF = f"https://n01darts.com/n01/tournament/n01_view.html?tmid={MATCH_ID}"
MATCH_PAGE = '<article><div id="menu_stats">Stats</div><iframe id="stats_frame"></iframe></article>'


def frame_html(names=("Alice", "Bob")):
    name_cells = "".join(f'<span class="name_text">{name}</span>' for name in names)
    return f"""
    <html><body>
      {name_cells}
      <table class="stats_table"><tr>
        <td id="p1_legs">3</td><td id="p1_score">78.90</td><td id="p1_ton80">1</td>
        <td id="p1_60">4</td><td id="p1_80">2</td>
        <td id="p2_legs">1</td><td id="p2_score">66,50</td><td id="p2_ton00">5</td>
      </tr></table>
      <div class="detail checkout"><span class="left">50% (3/6)</span><span class="right">10% (1/10)</span></div>
    </body></html>
    """


def match_page(**kwargs):
    kwargs.setdefault("html", MATCH_PAGE)
    kwargs.setdefault("title", "n01 match view")
    kwargs.setdefault("frame_html", frame_html())
    return FakePage(**kwargs)


class PageSequence:
    """Page factory returning prepared pages in order."""

    def __init__(self, *pages):
        self.pages = list(pages)

    def __call__(self):
        return self.pages.pop(0)


def build_scraper(test_settings, fast_retry, page_factory):
    manager = FakeSessionManager(page_factory)
    scraper = PlayerResultScraper(
        config=test_settings, session_manager=manager, retry_policy=fast_retry
    )
    return scraper, manager


@pytest.mark.asyncio
async def test_extracts_both_players(test_settings, fast_retry):
    scraper, manager = build_scraper(test_settings, fast_retry, match_page)

    first, second = await scraper.scrape(MATCH_HREF, MATCH_ID)

    assert first.player_match_identifier == "t_Mb5i_9382_rr_2_PA"
    assert first.average_score == 78.90
    assert first.score_60_count == 6
    assert first.score_180_count == 1
    assert first.checkout_percentage == 50.0
    assert (first.legs_won, first.legs_lost) == (3, 1)
    assert second.player_match_identifier == "t_Mb5i_9382_rr_2_PB"
    assert second.average_score == 66.5
    assert second.score_100_count == 5

    session = manager.acquired[0]
    assert (session.profile.viewport_width, session.profile.viewport_height) == (480, 320)
    assert "click:#menu_stats" in session.page.calls
    assert manager.all_released


@pytest.mark.asyncio
@pytest.mark.parametrize("names", [("Solo",), ("A", "B", "C")])
async def test_wrong_player_count_is_fatal(test_settings, fast_retry, names):
    scraper, manager = build_scraper(
        test_settings, fast_retry, lambda: match_page(frame_html=frame_html(names))
    )

    with pytest.raises(UnexpectedLayout, match=f"found {len(names)}"):
        await scraper.scrape(MATCH_HREF, MATCH_ID)

    assert len(manager.acquired) == 1
    assert manager.all_released


@pytest.mark.asyncio
@pytest.mark.parametrize("identifier", ["", "PA_PB", "T_rr_1_PA"])
async def test_invalid_identifier_rejected_before_browser(test_settings, fast_retry, identifier):
    scraper, manager = build_scraper(test_settings, fast_retry, match_page)

    with pytest.raises(InvalidInput):
        await scraper.scrape(MATCH_HREF, identifier)
    assert manager.acquired == []


@pytest.mark.asyncio
@pytest.mark.parametrize("href", ["", "n01_view.html?tmid=x", "ftp://n01darts.com/x"])
async def test_invalid_href_rejected_before_browser(test_settings, fast_retry, href):
    scraper, manager = build_scraper(test_settings, fast_retry, match_page)

    with pytest.raises(InvalidInput):
        await scraper.scrape(href, MATCH_ID)
    assert manager.acquired == []


@pytest.mark.asyncio
async def test_timeout_retried_with_fresh_session(test_settings, fast_retry):
    pages = PageSequence(
        match_page(goto_error=PlaywrightTimeout("Timeout 45000ms exceeded")),
        match_page(),
    )
    scraper, manager = build_scraper(test_settings, fast_retry, pages)

    results = await scraper.scrape(MATCH_HREF, MATCH_ID)

    assert len(results) == 2
    assert len(manager.acquired) == 2
    assert manager.acquired[0] is not manager.acquired[1]
    assert manager.all_released


@pytest.mark.asyncio
async def test_retry_ceiling_override(test_settings, fast_retry):
    scraper, manager = build_scraper(
        test_settings, fast_retry,
        lambda: match_page(goto_error=PlaywrightTimeout("Timeout 45000ms exceeded")),
    )

    with pytest.raises(TransientError):
        await scraper.scrape(MATCH_HREF, MATCH_ID, max_attempts=1)
    assert len(manager.acquired) == 1


@pytest.mark.asyncio
async def test_page_closed_after_navigation_is_resource_exhaustion(test_settings, fast_retry):
    scraper, manager = build_scraper(
        test_settings, fast_retry, lambda: match_page(close_on_goto=True)
    )

    with pytest.raises(ResourceExhausted):
        await scraper.scrape(MATCH_HREF, MATCH_ID)
    assert len(manager.acquired) == 1
    assert manager.all_released


@pytest.mark.asyncio
async def test_waits_out_bot_interstitial(test_settings, fast_retry):
    scraper, manager = build_scraper(
        test_settings, fast_retry, lambda: match_page(title="Just a moment...")
    )

    await scraper.scrape(MATCH_HREF, MATCH_ID)

    calls = manager.acquired[0].page.calls
    assert calls.count("selector:article") == 2


class StuckChallengePage(FakePage):
    """Interstitial whose first wait for the article times out."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.article_waits = 0

    async def wait_for_selector(self, selector, timeout=None, state=None):
        await super().wait_for_selector(selector, timeout=timeout, state=state)
        if selector == "article":
            self.article_waits += 1
            if self.article_waits == 1:
                raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded")


@pytest.mark.asyncio
async def test_proceeds_when_bot_interstitial_wait_times_out(test_settings, fast_retry):
    scraper, manager = build_scraper(
        test_settings, fast_retry,
        lambda: StuckChallengePage(
            html=MATCH_PAGE, title="Just a moment...", frame_html=frame_html()
        ),
    )

    results = await scraper.scrape(MATCH_HREF, MATCH_ID)

    assert len(results) == 2
    assert len(manager.acquired) == 1
    assert manager.acquired[0].page.article_waits == 2
    assert manager.all_released
