"""
Date parsing for tournament completion dates.

n01 exposes a tournament's date in several unreliable places:
- the match history API (unix startTime per match)
- the results tab markup ("DD/MM/YYYY HH:MM:SS" or "DD.MM.YYYY HH:MM:SS")
- match title elements rendered after load ("DD.MM.YYYY HH:MM:SS - Name")
- the page title ("... DD.MM.YYYY")

Every parser here returns a timezone-aware datetime at UTC midnight, or None.
Impossible calendar dates (31/02/2024) count as "no date".
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from bs4 import BeautifulSoup

# Finals often run past midnight and get logged on the next calendar day.
FINALS_OVERRUN = timedelta(hours=4)

# Trailing window for acceptable completion dates
DISCOVERY_WINDOW = timedelta(days=365)

SLASH_TIMESTAMP_RE = re.compile(r"(\d{2})/(\d{2})/(\d{4})\s+(\d{2}):(\d{2}):(\d{2})")
DOT_TIMESTAMP_RE = re.compile(r"(\d{2})\.(\d{2})\.(\d{4})\s+(\d{2}):(\d{2}):(\d{2})")
DOT_DATE_RE = re.compile(r"(\d{1,2})\.(\d{1,2})\.(\d{4})")
SLASH_DATE_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")

MATCH_TITLE_SELECTORS = (".match_list_title_td", ".m_match_title")
BROAD_SCAN_SELECTOR = "div, span, td"


def utc_midnight(year: int, month: int, day: int) -> Optional[datetime]:
    """Build a UTC-midnight datetime, or None for an impossible date."""
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def truncate_to_utc_date(moment: datetime) -> datetime:
    moment = moment.astimezone(timezone.utc)
    return datetime(moment.year, moment.month, moment.day, tzinfo=timezone.utc)


def _from_day_month_year(match: Optional[re.Match]) -> Optional[datetime]:
    if not match:
        return None
    day, month, year = (int(g) for g in match.groups()[:3])
    return utc_midnight(year, month, day)


def parse_history_payload(payload: Any) -> Optional[datetime]:
    """
    Date from a history API payload ({"list": [{"startTime": ...}, ...]}).

    The list comes back newest first, so the first entry with a positive
    startTime is the tournament's last match (normally the final). Four hours
    are subtracted before truncating, so a final that finished after midnight
    still lands on the day the tournament was played.
    """
    if not isinstance(payload, dict):
        return None
    entries = payload.get("list")
    if not isinstance(entries, list):
        return None

    for entry in entries:
        if not isinstance(entry, dict):
            continue
        start_time = entry.get("startTime")
        try:
            seconds = float(start_time)
        except (TypeError, ValueError):
            continue
        if seconds <= 0:
            continue
        try:
            played_at = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            continue
        return truncate_to_utc_date(played_at - FINALS_OVERRUN)

    return None


def epoch_to_utc_date(seconds: Any) -> Optional[datetime]:
    """Date from a numeric epoch-seconds field (0/None/garbage -> None)."""
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return None
    if value <= 0:
        return None
    try:
        return truncate_to_utc_date(datetime.fromtimestamp(value, tz=timezone.utc))
    except (OverflowError, OSError, ValueError):
        return None


def find_markup_date(html: str) -> Optional[datetime]:
    """
    First timestamped date in raw markup.

    Slash format wins. The dot format is only consulted when the markup has
    no slash timestamps at all.
    """
    if not html:
        return None
    match = SLASH_TIMESTAMP_RE.search(html)
    if match:
        return _from_day_month_year(match)
    return _from_day_month_year(DOT_TIMESTAMP_RE.search(html))


def parse_text_date(text: str) -> Optional[datetime]:
    """Date from free text: 'D.M.YYYY' preferred, then 'D/M/YYYY'."""
    if not text:
        return None
    return _from_day_month_year(DOT_DATE_RE.search(text) or SLASH_DATE_RE.search(text))


def first_match_title_text(html: str) -> Optional[str]:
    """
    Text of the first match title on a rendered results tab.

    Tries the known title cells first. If none exist (or the first is blank),
    falls back to the first generic container whose text carries a
    timestamp.
    """
    soup = BeautifulSoup(html or "", "lxml")

    elements = []
    for selector in MATCH_TITLE_SELECTORS:
        elements = soup.select(selector)
        if elements:
            break

    if elements and elements[0].get_text(strip=True):
        return elements[0].get_text(" ", strip=True)

    for element in soup.select(BROAD_SCAN_SELECTOR):
        text = element.get_text(" ", strip=True)
        if text and SLASH_TIMESTAMP_RE.search(text):
            return text

    return None


def find_match_title_date(html: str) -> Optional[datetime]:
    """Date of the first match on a rendered results tab."""
    text = first_match_title_text(html)
    if not text:
        return None
    return parse_text_date(text)


def find_title_date(title: str) -> Optional[datetime]:
    """Date embedded in a page title ('D.M.YYYY' only)."""
    if not title:
        return None
    return _from_day_month_year(DOT_DATE_RE.search(title))


def is_within_window(
    moment: datetime,
    now: datetime,
    window: timedelta = DISCOVERY_WINDOW,
) -> bool:
    """Half-open acceptance window: now - window <= moment < now."""
    return now - window <= moment < now
