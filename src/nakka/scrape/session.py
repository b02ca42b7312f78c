"""
Browser session management.

Owns the lifecycle of one Playwright browser per scrape invocation:
launch with a resource posture, hand out a single stealth-enabled page,
and tear everything down again without ever raising.

Two postures exist:
- constrained: serverless / low-memory hosts. Memory-saving Chromium flags,
  a small viewport, and every non-essential request (images, fonts, styles,
  media, sockets, third-party scripts) aborted at the router.
- local: a permissive development posture that only skips heavy assets.

Usage:
    manager = SessionManager()
    async with manager.open(profile_for_environment()) as session:
        await session.page.goto(url)
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, BrowserContext, Page, Route, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright_stealth import Stealth

from nakka.config import Settings, settings as default_settings
from nakka.scrape.errors import (
    WAYPOINT_LAUNCH,
    WAYPOINT_NAVIGATION,
    ResourceExhausted,
    TransientError,
    translate_error,
)

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

CONSTRAINED_LAUNCH_ARGS = (
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-setuid-sandbox",
    "--no-sandbox",
    "--no-zygote",
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process,TranslateUI,BlinkGenPropertyTrees",
    "--disable-blink-features=AutomationControlled",
    # Memory saving flags
    "--disable-software-rasterizer",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--disable-component-extensions-with-background-pages",
    "--disable-ipc-flooding-protection",
    "--disable-renderer-backgrounding",
    "--enable-features=NetworkService,NetworkServiceInProcess",
    "--force-color-profile=srgb",
    "--hide-scrollbars",
    "--mute-audio",
    "--disable-accelerated-2d-canvas",
    "--disable-canvas-aa",
    "--disable-2d-canvas-clip-aa",
    "--js-flags=--max-old-space-size=512",
)

LOCAL_LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
)

HEAVY_RESOURCE_TYPES = frozenset({"image", "font", "media", "stylesheet"})
NON_ESSENTIAL_RESOURCE_TYPES = HEAVY_RESOURCE_TYPES | {"websocket", "manifest", "other"}


@dataclass(frozen=True)
class SessionProfile:
    """
    Launch and loading posture for one browser session.

    The posture only decides what the browser loads and how big it renders.
    Extraction logic is identical under every profile.
    """

    name: str
    launch_args: tuple[str, ...]
    viewport_width: int = 800
    viewport_height: int = 600
    blocked_resource_types: frozenset = HEAVY_RESOURCE_TYPES
    block_third_party_scripts: bool = False
    first_party_marker: str = "n01"
    headless: bool = True
    executable_path: Optional[str] = None
    launch_timeout: int = 30000
    locale: str = "en-US"
    timezone_id: Optional[str] = None
    extra_headers: dict = field(default_factory=lambda: {"Cache-Control": "no-cache"})

    def with_viewport(self, width: int, height: int) -> "SessionProfile":
        """Copy of this profile rendering at a different size."""
        return replace(self, viewport_width=width, viewport_height=height)

    def should_block(self, resource_type: str, url: str) -> bool:
        """Decide whether the router aborts a request."""
        if resource_type in self.blocked_resource_types:
            return True
        if (
            self.block_third_party_scripts
            and resource_type == "script"
            and self.first_party_marker not in url
        ):
            return True
        return False


def constrained_profile(config: Optional[Settings] = None) -> SessionProfile:
    """Posture for memory-limited hosts (serverless functions)."""
    config = config or default_settings
    return SessionProfile(
        name="constrained",
        launch_args=CONSTRAINED_LAUNCH_ARGS,
        viewport_width=800,
        viewport_height=600,
        blocked_resource_types=NON_ESSENTIAL_RESOURCE_TYPES,
        block_third_party_scripts=True,
        headless=True,
        executable_path=config.scrape_executable_path,
        launch_timeout=config.scrape_launch_timeout,
        timezone_id="Europe/Warsaw",
    )


def local_profile(config: Optional[Settings] = None) -> SessionProfile:
    """Permissive posture for development machines."""
    config = config or default_settings
    return SessionProfile(
        name="local",
        launch_args=LOCAL_LAUNCH_ARGS,
        viewport_width=1280,
        viewport_height=800,
        blocked_resource_types=HEAVY_RESOURCE_TYPES,
        block_third_party_scripts=False,
        headless=config.scrape_headless,
        executable_path=config.scrape_executable_path,
        launch_timeout=config.scrape_launch_timeout,
    )


def profile_for_environment(config: Optional[Settings] = None) -> SessionProfile:
    """Pick the posture from the SCRAPE_CONSTRAINED flag."""
    config = config or default_settings
    if config.scrape_constrained:
        return constrained_profile(config)
    return local_profile(config)


class BrowserSession:
    """
    One launched browser with a single page, owned by one invocation.

    Tracks the last waypoint reached so a page closing mid-run can be
    classified: before the page loaded it means the host is out of memory,
    after that it is a transient failure.
    """

    def __init__(
        self,
        profile: SessionProfile,
        page: Page,
        context: Optional[BrowserContext] = None,
        browser: Optional[Browser] = None,
        playwright=None,
    ):
        self.profile = profile
        self.page = page
        self.context = context
        self.browser = browser
        self.playwright = playwright
        self.waypoint: Optional[str] = WAYPOINT_LAUNCH
        self.released = False

    def mark(self, waypoint: str) -> None:
        """Record that the session reached a known-good step."""
        self.waypoint = waypoint
        logger.debug("Session reached waypoint: %s", waypoint)

    def is_alive(self) -> bool:
        return not self.released and not self.page.is_closed()

    def ensure_alive(self, step: str) -> None:
        """
        Raise if the page has gone away.

        Raises:
            ResourceExhausted: page closed before it ever loaded
            TransientError: page closed after it had loaded
        """
        if self.is_alive():
            return
        if self.waypoint in (WAYPOINT_LAUNCH, WAYPOINT_NAVIGATION):
            raise ResourceExhausted(
                "Page closed immediately after navigation - host out of memory"
            )
        raise TransientError(f"Page was closed while {step}")

    def __repr__(self) -> str:
        return f"<BrowserSession({self.profile.name}, waypoint={self.waypoint})>"


class SessionManager:
    """
    Acquires and releases browser sessions.

    acquire() either returns a fully set-up session or cleans up whatever it
    started and raises a ScrapeError. release() is idempotent and swallows
    every teardown error.
    """

    def __init__(self, stealth: Optional[Stealth] = None):
        self._stealth = stealth or Stealth()

    async def acquire(self, profile: SessionProfile) -> BrowserSession:
        """
        Launch a browser under the given profile and open one page.

        Raises:
            ResourceExhausted: the browser died while starting
            TransientError: launch timed out
            ScrapeError: any other launch failure
        """
        logger.info("Launching Chromium (%s posture)", profile.name)
        playwright = None
        browser = None
        context = None
        try:
            playwright = await async_playwright().start()
            launch_kwargs = {
                "headless": profile.headless,
                "args": list(profile.launch_args),
                "timeout": profile.launch_timeout,
            }
            if profile.executable_path:
                launch_kwargs["executable_path"] = profile.executable_path
            browser = await playwright.chromium.launch(**launch_kwargs)

            context_kwargs = {
                "user_agent": USER_AGENT,
                "viewport": {
                    "width": profile.viewport_width,
                    "height": profile.viewport_height,
                },
                "locale": profile.locale,
                "java_script_enabled": True,
            }
            if profile.timezone_id:
                context_kwargs["timezone_id"] = profile.timezone_id
            context = await browser.new_context(**context_kwargs)

            page = await context.new_page()
            await self._stealth.apply_stealth_async(page)
            if profile.extra_headers:
                await page.set_extra_http_headers(profile.extra_headers)
            await page.route("**/*", self._make_router(profile))
        except Exception as e:
            error = translate_error(e, WAYPOINT_LAUNCH)
            logger.error("Browser launch failed: %s", error)
            await self._teardown(context, browser, playwright)
            raise error from e

        return BrowserSession(profile, page, context, browser, playwright)

    async def release(self, session: Optional[BrowserSession]) -> None:
        """Close the session's browser. Safe to call repeatedly; never raises."""
        if session is None or session.released:
            return
        session.released = True
        await self._teardown(session.context, session.browser, session.playwright)
        logger.debug("Released %r", session)

    @asynccontextmanager
    async def open(self, profile: SessionProfile) -> AsyncIterator[BrowserSession]:
        """Acquire a session for the duration of a block, always releasing it."""
        session = await self.acquire(profile)
        try:
            yield session
        finally:
            await self.release(session)

    def _make_router(self, profile: SessionProfile):
        async def _route(route: Route) -> None:
            request = route.request
            try:
                if profile.should_block(request.resource_type, request.url):
                    await route.abort()
                else:
                    await route.continue_()
            except PlaywrightError as e:
                # Page went away while the request was in flight
                logger.debug("Route handling failed for %s: %s", request.url, e)

        return _route

    async def _teardown(self, context, browser, playwright) -> None:
        for name, closer in (
            ("context", context and context.close),
            ("browser", browser and browser.close),
            ("playwright", playwright and playwright.stop),
        ):
            if not closer:
                continue
            try:
                await closer()
            except Exception as e:
                logger.debug("Ignoring error while closing %s: %s", name, e)
