"""
Identifier synthesis and decomposition.

n01 has no native match ids, so we synthesize them:

    {tournament_id}_{stage_tag}_{round}_{lower_code}_{higher_code}

stage_tag is "rr" (round robin) or "t" (knockout). The two player codes are
sorted so a pairing yields the same id whichever side it was discovered from.

Tournament ids may contain underscores themselves (e.g. "t_Mb5i_9382"), so
decomposition reads the id from the right: the last four parts are fixed,
everything before them is the tournament id.
"""

import re
from dataclasses import dataclass
from typing import Optional

from nakka.scrape.errors import InvalidInput

STAGE_ROUND_ROBIN = "rr"
STAGE_KNOCKOUT = "t"

_TOURNAMENT_ID_RE = re.compile(r"[?&]id=([^&#]+)")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class MatchIdentifier:
    """
    A decomposed match identifier.

    Attributes:
        tournament_id: Native tournament code (may contain underscores)
        stage_tag: 'rr' or 't'
        round: Round attribute as given by the page ('0' when missing)
        first_player_code: Lexicographically lower player code
        second_player_code: Lexicographically higher player code
    """

    tournament_id: str
    stage_tag: str
    round: str
    first_player_code: str
    second_player_code: str

    def __str__(self) -> str:
        return "_".join(
            (
                self.tournament_id,
                self.stage_tag,
                self.round,
                self.first_player_code,
                self.second_player_code,
            )
        )

    @property
    def player_codes(self) -> tuple[str, str]:
        return (self.first_player_code, self.second_player_code)

    def player_identifier(self, player_code: str) -> str:
        """Identifier for one player's result within this match."""
        return f"{self.tournament_id}_{self.stage_tag}_{self.round}_{player_code}"


def build_match_identifier(
    tournament_id: str,
    stage_tag: str,
    round_value: Optional[str],
    player_code: str,
    opponent_code: str,
) -> MatchIdentifier:
    """
    Synthesize the identifier for a pairing.

    Args:
        tournament_id: Native tournament code
        stage_tag: 'rr' or 't'
        round_value: Round attribute (None/empty becomes '0')
        player_code: Code of the player the element belongs to
        opponent_code: Code of the opponent

    Returns:
        MatchIdentifier with the codes in ascending order

    Raises:
        InvalidInput: if a code is missing or both codes are equal
    """
    if not player_code or not opponent_code:
        raise InvalidInput("Match needs two player codes")
    if player_code == opponent_code:
        raise InvalidInput(f"Player cannot face themselves: {player_code}")

    first, second = sorted((player_code, opponent_code))
    return MatchIdentifier(
        tournament_id=tournament_id,
        stage_tag=stage_tag,
        round=round_value or "0",
        first_player_code=first,
        second_player_code=second,
    )


def parse_match_identifier(value: str) -> MatchIdentifier:
    """
    Decompose a synthesized match identifier.

    Raises:
        InvalidInput: fewer than five underscore-delimited parts, an empty
            component, or the same player code twice
    """
    parts = (value or "").split("_")
    if len(parts) < 5:
        raise InvalidInput(f"Invalid match identifier format: {value!r}")

    tournament_id = "_".join(parts[:-4])
    stage_tag, round_value, first_code, second_code = parts[-4:]
    if not all((tournament_id, stage_tag, round_value, first_code, second_code)):
        raise InvalidInput(f"Invalid match identifier format: {value!r}")
    if first_code == second_code:
        raise InvalidInput(f"Player cannot face themselves: {first_code}")

    return MatchIdentifier(
        tournament_id=tournament_id,
        stage_tag=stage_tag,
        round=round_value,
        first_player_code=first_code,
        second_player_code=second_code,
    )


def parse_match_type(subtitle: Optional[str], stage_tag: str) -> str:
    """
    Classify a match from its stage subtitle.

    Round-robin matches are always 'rr'. Knockout matches become
    't_<subtitle slug>' ('t_unknown' without a subtitle).

    Examples:
        >>> parse_match_type("Semi Final", "t")
        't_semi_final'
        >>> parse_match_type(None, "t")
        't_unknown'
    """
    if stage_tag == STAGE_ROUND_ROBIN:
        return STAGE_ROUND_ROBIN
    slug = _WHITESPACE_RE.sub("_", (subtitle or "").strip().lower())
    if not slug:
        return "t_unknown"
    return f"t_{slug}"


def tournament_id_from_href(href: str) -> str:
    """
    Pull the tournament code out of a comp.php URL.

    Raises:
        InvalidInput: if the URL has no id query parameter
    """
    match = _TOURNAMENT_ID_RE.search(href or "")
    if not match:
        raise InvalidInput(f"Could not extract tournament ID from URL: {href}")
    return match.group(1)


def tournament_href(base_url: str, tournament_id: str) -> str:
    return f"{base_url}/comp.php?id={tournament_id}"


def match_href(base_url: str, identifier: MatchIdentifier) -> str:
    return f"{base_url}/n01_view.html?tmid={identifier}"
