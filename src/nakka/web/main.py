import logging
from typing import Any, Awaitable, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from nakka import __version__
from nakka.config import Settings, get_settings, settings
from nakka.scrape.errors import (
    InvalidInput,
    ResourceExhausted,
    ScrapeError,
    UnexpectedLayout,
)
from nakka.scrape.matches import scrape_tournament_matches
from nakka.scrape.player_results import scrape_match_player_results
from nakka.scrape.tournaments import scrape_tournaments_by_keyword

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = (
    (InvalidInput, 400),
    (UnexpectedLayout, 502),
    (ResourceExhausted, 503),
)


class TournamentSearchRequest(BaseModel):
    keyword: Optional[str] = None


class TournamentMatchesRequest(BaseModel):
    tournamentHref: Optional[str] = None


class PlayerResultsRequest(BaseModel):
    matchHref: Optional[str] = None
    nakkaMatchIdentifier: Optional[str] = None


def status_code_for(exc: ScrapeError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def require_api_key(
    x_api_key: Optional[str] = Header(default=None),
    config: Settings = Depends(get_settings),
) -> None:
    """Reject the request unless it carries the configured X-API-Key."""
    if config.api_key and x_api_key != config.api_key:
        raise HTTPException(status_code=401, detail="Unauthorized")


app = FastAPI(title="Nakka Scraper", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["X-Requested-With", "Content-Type", "X-API-Key"],
)


@app.exception_handler(ScrapeError)
async def scrape_error_handler(request: Request, exc: ScrapeError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("[API] Scraping error on %s: %s", request.url.path, exc)
    else:
        logger.warning("[API] Rejected %s: %s", request.url.path, exc)
    return JSONResponse({"success": False, "error": str(exc)}, status_code=status_code)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse({"success": False, "error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"success": False, "error": "Invalid request body"}, status_code=400)


async def _respond(label: str, pending: Awaitable[list]) -> JSONResponse:
    """Await a scrape and wrap its records in the response envelope."""
    try:
        records = await pending
    except ScrapeError:
        raise
    except Exception as e:
        logger.exception("[API] Unexpected failure while %s", label)
        raise ScrapeError(str(e) or "Unknown error") from e

    data: list[dict[str, Any]] = [record.to_dict() for record in records]
    logger.info("[API] Successfully scraped %d records (%s)", len(data), label)
    return JSONResponse({"success": True, "data": data, "count": len(data)})


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.post("/api/scrape-tournaments", dependencies=[Depends(require_api_key)])
async def scrape_tournaments(body: TournamentSearchRequest):
    """Completed tournaments from the last year matching a keyword."""
    keyword = (body.keyword or "").strip()
    if not keyword:
        raise InvalidInput("Missing or invalid keyword parameter")

    logger.info("[API] Scraping tournaments for keyword: %s", keyword)
    return await _respond("searching tournaments", scrape_tournaments_by_keyword(keyword))


@app.post("/api/scrape-matches", dependencies=[Depends(require_api_key)])
async def scrape_matches(body: TournamentMatchesRequest):
    """Played matches of one tournament."""
    if not body.tournamentHref:
        raise InvalidInput("Missing or invalid tournamentHref parameter")

    logger.info("[API] Scraping matches for tournament: %s", body.tournamentHref)
    return await _respond(
        "listing matches", scrape_tournament_matches(body.tournamentHref)
    )


@app.post("/api/scrape-player-results", dependencies=[Depends(require_api_key)])
async def scrape_player_results(body: PlayerResultsRequest):
    """Both players' statistics for one match."""
    if not body.matchHref or not body.nakkaMatchIdentifier:
        raise InvalidInput("Missing matchHref or nakkaMatchIdentifier parameter")

    logger.info("[API] Scraping player results for match: %s", body.nakkaMatchIdentifier)
    return await _respond(
        "extracting player results",
        scrape_match_player_results(body.matchHref, body.nakkaMatchIdentifier),
    )
