"""
Error taxonomy for the scrape pipeline.

Every failure that leaves a scrape operation is one of four kinds:

- InvalidInput: malformed identifier or href. Raised before any browser work.
- UnexpectedLayout: the page no longer matches the structure we parse.
- TransientError: timeouts, or the page closing after it had loaded.
  Safe to retry with backoff.
- ResourceExhausted: the browser died on launch or right after navigation.
  The host is out of memory; retrying only makes it worse.

Raw Playwright errors are mapped onto this taxonomy by translate_error(),
using the session's last waypoint to tell "closed during navigation" apart
from "closed after the page loaded".
"""

from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

# Waypoints a session passes through, in order. A page closing before
# LOADED means the host could not even render the page.
WAYPOINT_LAUNCH = "launch"
WAYPOINT_NAVIGATION = "navigation"
WAYPOINT_LOADED = "loaded"

_PRE_LOAD_WAYPOINTS = {None, WAYPOINT_LAUNCH, WAYPOINT_NAVIGATION}

_RESOURCE_MARKERS = ("ERR_INSUFFICIENT_RESOURCES", "ERR_OUT_OF_MEMORY")
_CLOSED_MARKERS = (
    "has been closed",
    "Target closed",
    "Browser closed",
    "Page closed",
    "closed while",
    "closed after",
)


class ScrapeError(Exception):
    """Base class for scrape failures. Not retried unless a subclass says so."""

    retryable = False


class InvalidInput(ScrapeError):
    """Raised when an identifier or href cannot be used."""


class UnexpectedLayout(ScrapeError):
    """Raised when a structural assumption about the page no longer holds."""


class TransientError(ScrapeError):
    """Raised for timeouts and post-load page closures."""

    retryable = True


class ResourceExhausted(ScrapeError):
    """Raised when the browser dies before the page could load."""


def is_retryable(exc: BaseException) -> bool:
    """Return True only for errors the retry policy may repeat."""
    return isinstance(exc, ScrapeError) and exc.retryable


def _is_closed_message(message: str) -> bool:
    return any(marker in message for marker in _CLOSED_MARKERS)


def translate_error(exc: BaseException, waypoint: Optional[str] = None) -> ScrapeError:
    """
    Map an arbitrary exception onto the scrape taxonomy.

    Args:
        exc: The exception raised during an attempt
        waypoint: Last waypoint the session reached (see BrowserSession.mark)

    Returns:
        A ScrapeError subclass instance. Errors that already belong to the
        taxonomy are returned unchanged.
    """
    if isinstance(exc, ScrapeError):
        return exc

    message = str(exc)
    where = waypoint or WAYPOINT_LAUNCH

    if any(marker in message for marker in _RESOURCE_MARKERS):
        return ResourceExhausted(f"Browser ran out of resources at {where}: {message}")

    if isinstance(exc, PlaywrightTimeout):
        return TransientError(f"Timeout after {where}: {message}")

    if isinstance(exc, PlaywrightError) and _is_closed_message(message):
        if waypoint in _PRE_LOAD_WAYPOINTS:
            return ResourceExhausted(
                f"Page closed during navigation (host out of memory): {message}"
            )
        return TransientError(f"Page closed after {where}: {message}")

    return ScrapeError(f"{type(exc).__name__} at {where}: {message}")
