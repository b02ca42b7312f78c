"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.

Browser work is exercised against in-memory fakes of the Playwright page and
the session manager, so no browser is ever launched.
"""

from datetime import datetime, timezone

import pytest
from bs4 import BeautifulSoup

from nakka.config import Settings
from nakka.scrape.retry import RetryPolicy
from nakka.scrape.session import BrowserSession, local_profile


class FakeResponse:
    def __init__(self, url, payload=None, error=None):
        self.url = url
        self._payload = payload
        self._error = error

    async def json(self):
        if self._error is not None:
            raise self._error
        return self._payload


class FakeFrame:
    def __init__(self, html):
        self.html = html

    async def content(self):
        return self.html


class FakeElementHandle:
    def __init__(self, frame=None):
        self.frame = frame

    async def content_frame(self):
        return self.frame


class FakeLocator:
    def __init__(self, page):
        self.page = page

    def locator(self, selector):
        return self

    async def wait_for(self, timeout=None):
        self.page.calls.append("frame_wait")


class FakePage:
    """
    Minimal stand-in for a Playwright page.

    html is what content() returns, and query_selector() answers from it.
    Responses are delivered to 'response' listeners during goto().
    """

    def __init__(
        self,
        html="",
        title="",
        frame_html=None,
        responses=None,
        evaluate_result=None,
        goto_error=None,
        close_on_goto=False,
    ):
        self.html = html
        self.page_title = title
        self.frame_html = frame_html
        self.responses = list(responses or [])
        self.evaluate_result = evaluate_result
        self.goto_error = goto_error
        self.close_on_goto = close_on_goto
        self.closed = False
        self.listeners = {}
        self.visited = []
        self.calls = []

    def on(self, event, handler):
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.listeners.get(event, []).remove(handler)

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error
        if self.close_on_goto:
            self.closed = True
        for response in self.responses:
            for handler in list(self.listeners.get("response", [])):
                handler(response)

    def is_closed(self):
        return self.closed

    async def wait_for_load_state(self, state=None, timeout=None):
        self.calls.append(f"load_state:{state}")

    async def wait_for_timeout(self, milliseconds):
        self.calls.append(f"sleep:{milliseconds}")

    async def wait_for_selector(self, selector, timeout=None, state=None):
        self.calls.append(f"selector:{selector}")

    async def wait_for_function(self, expression, timeout=None):
        self.calls.append("function")

    async def click(self, selector, force=False):
        self.calls.append(f"click:{selector}")

    def frame_locator(self, selector):
        return FakeLocator(self)

    async def content(self):
        return self.html

    async def title(self):
        return self.page_title

    async def evaluate(self, expression, arg=None):
        self.calls.append(f"evaluate:{arg}")
        if isinstance(self.evaluate_result, BaseException):
            raise self.evaluate_result
        return self.evaluate_result

    async def query_selector(self, selector):
        if selector == "#stats_frame" and self.frame_html is not None:
            return FakeElementHandle(FakeFrame(self.frame_html))
        found = BeautifulSoup(self.html or "", "lxml").select_one(selector)
        return FakeElementHandle() if found is not None else None


class FakeSessionManager:
    """Hands out sessions around fake pages and counts the lifecycle calls."""

    def __init__(self, page_factory=None):
        self.page_factory = page_factory or FakePage
        self.acquired = []
        self.release_calls = 0

    async def acquire(self, profile):
        session = BrowserSession(profile, self.page_factory())
        self.acquired.append(session)
        return session

    async def release(self, session):
        self.release_calls += 1
        session.released = True

    @property
    def all_released(self):
        return all(session.released for session in self.acquired)


@pytest.fixture
def test_settings():
    """Settings with the production defaults and no environment influence."""
    return Settings(_env_file=None, api_key=None)


@pytest.fixture
def fast_retry():
    """Retry policy that never actually waits between attempts."""
    return RetryPolicy(max_attempts=3, base_delay=0.0)


@pytest.fixture
def profile(test_settings):
    return local_profile(test_settings)


@pytest.fixture
def fixed_now():
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_session(profile):
    """Build a BrowserSession around a fake page."""

    def _make(page=None):
        return BrowserSession(profile, page or FakePage())

    return _make
