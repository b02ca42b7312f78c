"""
Nakka Scraper - n01 darts tournament data extraction

Pulls completed tournaments, matches and per-player statistics out of the
n01 ("Nakka") tournament site, which has no public API.

Main components:
- scrape: Playwright-driven scrapers, parsers and the session/retry layer
- web: FastAPI transport exposing the three scrape operations
"""

__version__ = "1.0.0"
