"""
Match statistics parsing.

The stats view is a separate document loaded into #stats_frame. Each player
slot (p1 / p2) exposes a fixed set of id'd cells:

    #p1_legs  #p1_score  #p1_first9  #p1_60  #p1_80  #p1_ton00  #p1_ton20
    #p1_ton40 #p1_ton70  #p1_ton80   #p1_highout     #p1_best   #p1_worst

plus a checkout cell (".detail.checkout .left" / ".right") holding mixed text
such as "42.86% (3/7)".

Score bands are displayed finer than we store them, so adjacent bands are
summed: 60+ = 60 + 80, 100+ = ton00 + ton20, 140+ = ton40 + ton70.

A field that cannot be parsed degrades (ints -> 0, floats -> None) instead of
failing the whole record.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

from nakka.scrape.base import ScrapedPlayerResult
from nakka.scrape.parsers.identifiers import MatchIdentifier

STAT_FIELDS = (
    "legs",
    "score",
    "first9",
    "60",
    "80",
    "ton00",
    "ton20",
    "ton40",
    "ton70",
    "ton80",
    "highout",
    "best",
    "worst",
)

CHECKOUT_SELECTORS = {
    "p1": ".detail.checkout .left",
    "p2": ".detail.checkout .right",
}

PLAYER_NAME_SELECTOR = ".name_text"

_FLOAT_PREFIX_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)")
_INT_PREFIX_RE = re.compile(r"^[+-]?\d+")
_CHECKOUT_RE = re.compile(r"^([\d.]+)%")


@dataclass
class StatsFrame:
    """Raw text pulled from the stats frame, keyed like 'p1_ton80'."""

    player_names: list[str] = field(default_factory=list)
    fields: dict[str, str] = field(default_factory=dict)

    def get(self, slot: str, name: str) -> str:
        return self.fields.get(f"{slot}_{name}", "")


def parse_float_value(text: Optional[str]) -> Optional[float]:
    """
    Leading decimal number of a cell ('87,45' and '87.45 avg' both -> 87.45).

    Returns None when there is no leading number.
    """
    if not text:
        return None
    cleaned = text.strip().replace(",", ".")
    match = _FLOAT_PREFIX_RE.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def parse_int_value(text: Optional[str]) -> int:
    """Leading integer of a cell, or 0."""
    if not text:
        return 0
    match = _INT_PREFIX_RE.match(text.strip())
    if not match:
        return 0
    return int(match.group(0))


def parse_checkout(text: Optional[str]) -> Optional[float]:
    """Percentage from checkout text like '42.86% (3/7)'; None if absent."""
    if not text:
        return None
    match = _CHECKOUT_RE.match(text.strip())
    if not match:
        return None
    return parse_float_value(match.group(1))


def parse_stats_frame(html: str) -> StatsFrame:
    """Read player names and every stat cell from the stats frame document."""
    soup = BeautifulSoup(html or "", "lxml")

    def text_of(selector: str) -> str:
        element = soup.select_one(selector)
        return element.get_text(strip=True) if element else ""

    frame = StatsFrame(
        player_names=[el.get_text(strip=True) for el in soup.select(PLAYER_NAME_SELECTOR)],
    )
    for slot in ("p1", "p2"):
        for name in STAT_FIELDS:
            frame.fields[f"{slot}_{name}"] = text_of(f"#{slot}_{name}")
        frame.fields[f"{slot}_checkout"] = text_of(CHECKOUT_SELECTORS[slot])
    return frame


def build_player_results(
    identifier: MatchIdentifier,
    frame: StatsFrame,
) -> list[ScrapedPlayerResult]:
    """
    Derive both players' results from the raw frame text.

    Slot p1 belongs to the lower player code, p2 to the higher one, matching
    the order the codes appear in the match identifier.
    """
    results = []
    slots = (("p1", "p2"), ("p2", "p1"))

    for (slot, opponent_slot), player_code in zip(slots, identifier.player_codes):
        def count(name: str) -> int:
            return parse_int_value(frame.get(slot, name))

        results.append(
            ScrapedPlayerResult(
                player_match_identifier=identifier.player_identifier(player_code),
                average_score=parse_float_value(frame.get(slot, "score")),
                first_nine_average=parse_float_value(frame.get(slot, "first9")),
                checkout_percentage=parse_checkout(frame.get(slot, "checkout")),
                score_60_count=count("60") + count("80"),
                score_100_count=count("ton00") + count("ton20"),
                score_140_count=count("ton40") + count("ton70"),
                score_180_count=count("ton80"),
                high_finish=count("highout"),
                best_leg=count("best"),
                worst_leg=count("worst"),
                legs_won=count("legs"),
                legs_lost=parse_int_value(frame.get(opponent_slot, "legs")),
            )
        )

    return results
