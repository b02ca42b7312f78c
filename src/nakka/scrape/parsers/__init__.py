"""
Parsers for scraped n01 data.

This module contains pure functions (no browser access) for:
- Match identifier synthesis and decomposition
- Date extraction from API payloads, markup and titles
- Stats frame parsing into per-player results
"""

from nakka.scrape.parsers.identifiers import (
    MatchIdentifier,
    build_match_identifier,
    parse_match_identifier,
    parse_match_type,
)

__all__ = [
    "MatchIdentifier",
    "build_match_identifier",
    "parse_match_identifier",
    "parse_match_type",
]
