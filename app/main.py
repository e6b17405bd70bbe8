"""
Second Turn Games - BGG Metadata Service
FastAPI application fronting the BoardGameGeek XML API with a shared
in-memory metadata/search cache.
"""
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.aggregation import GameAggregator
from app.bgg_client import BGGClient
from app.cache import CacheManager
from app.errors import ErrorCategory, InvalidRequestError, classify_error, user_message
from app.models import GameType
from app.view_models import game_details_to_dict
from config.settings import settings

logger = logging.getLogger(__name__)

# Version tracking
APP_VERSION = "v2.0.0"
APP_NAME = "Second Turn BGG Service"
APP_STAGE = "Beta"

RETRY_AFTER_SECONDS = 30


class GameIdsRequest(BaseModel):
    """Request body for batch endpoints."""
    gameIds: Optional[List[Any]] = None


# =============================================================================
# Error responses
# =============================================================================

def _error_response(exc: BaseException, search: bool = False) -> JSONResponse:
    """
    Convert an exception into the JSON error body used by every endpoint.

    Unknown failures are logged with a traceback and reported as a generic
    internal error.
    """
    category = classify_error(exc)
    if category is ErrorCategory.INTERNAL:
        logger.exception(f"Unhandled error: {exc}")
    else:
        logger.warning(f"{category.name}: {exc}")

    headers = None
    if category is ErrorCategory.RATE_LIMITED:
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)}

    return JSONResponse(
        status_code=category.status_code,
        content={"error": user_message(exc, search=search)},
        headers=headers,
    )


def _require_id(game_id: Optional[str]) -> str:
    game_id = (game_id or "").strip()
    if not game_id:
        raise InvalidRequestError('Game ID parameter "id" is required')
    return game_id


def _require_ids(body: GameIdsRequest) -> List[str]:
    if not body.gameIds:
        raise InvalidRequestError("Game IDs array is required")
    return [str(game_id) for game_id in body.gameIds]


# =============================================================================
# Application factory
# =============================================================================

def create_app(
    client: Optional[Any] = None,
    cache: Optional[CacheManager] = None,
) -> FastAPI:
    """
    Build the application.

    One cache manager and one transport client live on app.state for the
    lifetime of the process and are shared by all requests.

    Args:
        client: Transport client, defaults to a BGGClient from settings
        cache: Cache manager, defaults to one configured from settings
    """
    application = FastAPI(
        title=f"{APP_NAME} ({APP_STAGE})",
        description="BoardGameGeek metadata proxy with shared caching",
        version=APP_VERSION,
    )

    if cache is None:
        cache = CacheManager(
            metadata_ttl_seconds=settings.metadata_ttl_seconds,
            search_ttl_seconds=settings.search_ttl_seconds,
            max_entries=settings.cache_max_entries,
        )
    application.state.cache = cache
    application.state.aggregator = GameAggregator(client or BGGClient(), cache)

    _register_routes(application)
    return application


def get_cache(request: Request) -> CacheManager:
    return request.app.state.cache


def get_aggregator(request: Request) -> GameAggregator:
    return request.app.state.aggregator


def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok", "source": "boardgamegeek", "mode": "live"}

    @app.get("/version")
    def version_info():
        """Version information endpoint."""
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "stage": APP_STAGE,
            "full": f"{APP_NAME} {APP_VERSION} ({APP_STAGE})",
        }

    # -------------------------------------------------------------------------
    # Game metadata
    # -------------------------------------------------------------------------

    @app.post("/api/bgg/batch-game-details")
    def batch_game_details(
        body: GameIdsRequest,
        aggregator: GameAggregator = Depends(get_aggregator),
    ):
        """
        Metadata for up to batch_max_ids games.

        Results keep the request order; ids that could not be resolved carry
        an error instead of a game. Extra ids are ignored.
        """
        try:
            game_ids = _require_ids(body)[:settings.batch_max_ids]
            return aggregator.resolve_batch(game_ids).to_dict()
        except Exception as e:
            return _error_response(e)

    @app.get("/api/bgg/game")
    def game_details(
        id: Optional[str] = Query(None, description="BGG game id"),
        aggregator: GameAggregator = Depends(get_aggregator),
    ):
        """Full details for one game."""
        try:
            record = aggregator.resolve_game(_require_id(id))
            return {"game": game_details_to_dict(record)}
        except Exception as e:
            return _error_response(e)

    @app.get("/api/bgg/game-with-versions")
    def game_with_versions(
        id: Optional[str] = Query(None, description="BGG game id"),
        aggregator: GameAggregator = Depends(get_aggregator),
    ):
        """Game details plus language-matched versions from a single BGG call."""
        try:
            record, versions = aggregator.resolve_game_with_versions(_require_id(id))
            return {"game": game_details_to_dict(record), "versions": versions}
        except Exception as e:
            return _error_response(e)

    @app.get("/api/bgg/versions")
    def game_versions(
        id: Optional[str] = Query(None, description="BGG game id"),
        aggregator: GameAggregator = Depends(get_aggregator),
    ):
        """Language-matched versions of one game."""
        try:
            _record, versions = aggregator.resolve_game_with_versions(_require_id(id))
        except Exception as e:
            return _error_response(e)
        if not versions:
            return JSONResponse(status_code=404, content={"error": "No versions found for this game"})
        return {"versions": versions}

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    @app.get("/api/bgg/search")
    def search_games(
        q: Optional[str] = Query(None, description="Search query"),
        type: Optional[str] = Query(GameType.BOARDGAME.value, description="boardgame or boardgameexpansion"),
        exact: bool = Query(False, description="Exact name match"),
        aggregator: GameAggregator = Depends(get_aggregator),
    ):
        """
        Full search with metadata for the top matches.

        Example: /api/bgg/search?q=catan&type=boardgame
        """
        try:
            outcome = aggregator.search(q, type, exact)
            return {"results": outcome.results, "cached": outcome.from_cache}
        except Exception as e:
            return _error_response(e, search=True)

    @app.get("/api/bgg/search-light")
    def search_games_light(
        q: Optional[str] = Query(None, description="Search query"),
        type: Optional[str] = Query(GameType.BOARDGAME.value, description="boardgame or boardgameexpansion"),
        exact: bool = Query(False, description="Exact name match"),
        aggregator: GameAggregator = Depends(get_aggregator),
    ):
        """Fast search without metadata, one page of results."""
        try:
            outcome = aggregator.search_light(q, type, exact)
            return {
                "results": outcome.results,
                "total": outcome.total,
                "hasMore": outcome.has_more,
                "cached": outcome.from_cache,
            }
        except Exception as e:
            return _error_response(e, search=True)

    @app.post("/api/bgg/enhance-search")
    def enhance_search(
        body: GameIdsRequest,
        aggregator: GameAggregator = Depends(get_aggregator),
    ):
        """Metadata for light-search results, up to enhance_max_ids ids."""
        try:
            return {"results": aggregator.enhance_search(_require_ids(body))}
        except Exception as e:
            return _error_response(e)

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    @app.get("/api/bgg/cache-stats")
    def cache_stats(cache: CacheManager = Depends(get_cache)):
        """Get cache statistics."""
        return {
            "stats": cache.get_statistics().to_dict(),
            "efficiency": cache.get_efficiency(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.delete("/api/bgg/cache-stats")
    def clear_cache(cache: CacheManager = Depends(get_cache)):
        """Clear both cache namespaces and reset counters."""
        cleared = cache.clear_all()
        return {
            "message": "Cache cleared successfully",
            "cleared": cleared,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


app = create_app()
