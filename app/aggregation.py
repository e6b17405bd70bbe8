"""
Aggregation layer between the HTTP handlers and the BGG transport.

Every endpoint that needs game metadata goes through GameAggregator, which
partitions ids into cache hits and misses, makes one upstream call for the
misses, stores what parsed, and answers in the caller's original order.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.bgg_parser import clean_xml, extract_metadata, extract_search_items
from app.cache import CacheManager
from app.errors import GameNotFoundError, InvalidQueryError, is_retryable, user_message
from app.models import GameMetadata, GameType, SearchItem, classify_is_expansion
from app.utils.helpers import safe_float, safe_int, safe_lower, safe_strip
from app.versions import match_versions
from app.view_models import SearchResultPayload, game_details_to_dict, light_from_cached
from config.settings import settings

logger = logging.getLogger("aggregation")

NOT_FOUND_ENTRY_MESSAGE = "Game not found or failed to parse"

# Relevance weights for full search ranking
EXACT_NAME_SCORE = 1_000_000
PREFIX_NAME_SCORE = 500_000
CONTAINS_NAME_SCORE = 100_000
BASE_GAME_SCORE = 10_000
RANK_CEILING = 1000
RATING_WEIGHT = 100
YEAR_WEIGHT = 0.1

BatchFetcher = Callable[[List[str]], str]


# =============================================================================
# Result types
# =============================================================================

@dataclass
class GameResult:
    """Outcome for one requested id. Exactly one of game / error is set."""
    game_id: str
    game: Optional[GameMetadata] = None
    error: Optional[str] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.game is not None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "gameId": self.game_id,
            "game": game_details_to_dict(self.game) if self.game is not None else None,
        }
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class BatchResolution:
    """Ordered per-id results; cached/fetched counts are per position."""
    results: List[GameResult] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        successful = sum(1 for result in self.results if result.ok)
        cached = sum(1 for result in self.results if result.from_cache)
        return {
            "total": len(self.results),
            "successful": successful,
            "failed": len(self.results) - successful,
            "cached": cached,
            "fetched": len(self.results) - cached,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [result.to_dict() for result in self.results],
            "summary": self.summary,
        }


@dataclass
class SearchOutcome:
    results: List[Dict[str, Any]]
    total: int
    has_more: bool = False
    from_cache: bool = False


# =============================================================================
# Ranking
# =============================================================================

def calculate_result_score(result: Dict[str, Any], query: str) -> float:
    """
    Relevance score for one search result; higher sorts first.

    Name match dominates, then base games over expansions, then BGG rank,
    rating and recency as tie-breakers.
    """
    name = safe_lower(result.get("name"))
    needle = safe_lower(query).strip()
    score = 0.0

    if name == needle:
        score += EXACT_NAME_SCORE
    if name.startswith(needle):
        score += PREFIX_NAME_SCORE
    if needle in name:
        score += CONTAINS_NAME_SCORE

    if not result.get("isExpansion"):
        score += BASE_GAME_SCORE

    rank = safe_int(result.get("rank"))
    if rank > 0:
        score += max(0, RANK_CEILING - rank)

    rating = safe_float(result.get("bayesaverage"))
    if rating > 0:
        score += rating * RATING_WEIGHT

    year = safe_int(result.get("yearpublished"))
    if year > 0:
        score += max(0, year - 1900) * YEAR_WEIGHT

    return score


def rank_search_results(results: List[Dict[str, Any]], query: str) -> List[Dict[str, Any]]:
    """Attach searchScore to each result and sort by it, best first."""
    for result in results:
        result["searchScore"] = calculate_result_score(result, query)
    return sorted(results, key=lambda result: result["searchScore"], reverse=True)


def is_expansion(record: Any) -> bool:
    """Expansion if BGG labels it so or another game links to it as one."""
    return classify_is_expansion(
        getattr(record, "type", None),
        getattr(record, "has_inbound_expansion_link", False),
    )


def matches_requested_type(item: SearchItem, game_type: Optional[str]) -> bool:
    """BGG's search type filter is loose; drop items of the other kind."""
    if game_type == GameType.BOARDGAME.value:
        return item.type != GameType.EXPANSION.value
    if game_type == GameType.EXPANSION.value:
        return item.type != GameType.BOARDGAME.value
    return True


def matches_requested_kind(result: Dict[str, Any], game_type: Optional[str]) -> bool:
    """Post-enrichment check: inbound expansion links can turn a boardgame into an expansion."""
    if game_type == GameType.BOARDGAME.value:
        return not result.get("isExpansion")
    if game_type == GameType.EXPANSION.value:
        return bool(result.get("isExpansion"))
    return True


def _unique(ids: List[str]) -> List[str]:
    seen = set()
    unique = []
    for game_id in ids:
        if game_id not in seen:
            seen.add(game_id)
            unique.append(game_id)
    return unique


# =============================================================================
# Aggregator
# =============================================================================

class GameAggregator:
    """
    Resolves ids and queries against the cache, falling back to BGG.

    The client must provide search_games, get_game_details and
    get_batch_metadata returning raw XML (see app.bgg_client.BGGClient).
    """

    def __init__(
        self,
        client: Any,
        cache: CacheManager,
        search_metadata_batch_size: int = settings.search_metadata_batch_size,
        search_page_size: int = settings.search_page_size,
        enhance_max_ids: int = settings.enhance_max_ids,
        min_query_length: int = settings.min_query_length,
    ):
        self.client = client
        self.cache = cache
        self.search_metadata_batch_size = search_metadata_batch_size
        self.search_page_size = search_page_size
        self.enhance_max_ids = enhance_max_ids
        self.min_query_length = min_query_length

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def resolve_batch(
        self,
        game_ids: List[str],
        fetch: Optional[BatchFetcher] = None,
    ) -> BatchResolution:
        """
        Resolve metadata for a list of ids.

        Cache hits are served directly; all misses go to BGG in one call
        (duplicate ids are requested once). The output has one entry per
        input id, in input order, echoing the id exactly as given; lookups
        use the whitespace-stripped id. If the upstream call fails, every
        missed id gets an error entry and the cache hits are still returned.

        Args:
            game_ids: Requested ids, duplicates allowed
            fetch: Upstream operation for the misses, defaults to the
                client's batch metadata call

        Returns:
            BatchResolution with ordered results and a summary
        """
        fetch = fetch or self.client.get_batch_metadata
        ids = [safe_strip(game_id) for game_id in game_ids]

        cached: Dict[str, GameMetadata] = {}
        uncached: List[str] = []
        for game_id in ids:
            record = self.cache.get_metadata(game_id)
            if record is not None:
                cached[game_id] = record
            else:
                uncached.append(game_id)

        logger.info(f"Batch resolve: {len(ids)} ids, {len(ids) - len(uncached)} cached, {len(uncached)} to fetch")

        fetched: Dict[str, GameMetadata] = {}
        upstream_error: Optional[str] = None
        to_fetch = _unique(uncached)
        if to_fetch:
            try:
                records = extract_metadata(clean_xml(fetch(to_fetch)))
            except Exception as e:
                if is_retryable(e):
                    logger.warning(f"Batch fetch failed for {len(to_fetch)} ids, retryable: {e}")
                else:
                    logger.error(f"Batch fetch failed for {len(to_fetch)} ids: {e}")
                upstream_error = user_message(e)
            else:
                self.cache.put_metadata_batch(records)
                requested = set(to_fetch)
                fetched = {record.id: record for record in records if record.id in requested}

        resolution = BatchResolution()
        for raw_id, game_id in zip(game_ids, ids):
            if game_id in cached:
                resolution.results.append(GameResult(raw_id, game=cached[game_id], from_cache=True))
            elif game_id in fetched:
                resolution.results.append(GameResult(raw_id, game=fetched[game_id]))
            else:
                resolution.results.append(GameResult(raw_id, error=upstream_error or NOT_FOUND_ENTRY_MESSAGE))
        return resolution

    def resolve_game(self, game_id: str) -> GameMetadata:
        """
        Resolve one game, versions included.

        Raises:
            GameNotFoundError: BGG returned nothing parseable for the id
            BGGAPIError: The upstream call failed
        """
        game_id = safe_strip(game_id)
        record = self.cache.get_metadata(game_id)
        if record is not None:
            return record

        records = extract_metadata(clean_xml(self.client.get_game_details(game_id)))
        if not records:
            raise GameNotFoundError(game_id)

        self.cache.put_metadata_batch(records)
        for candidate in records:
            if candidate.id == game_id:
                return candidate
        return records[0]

    def resolve_game_with_versions(self, game_id: str) -> Tuple[GameMetadata, List[Dict[str, Any]]]:
        """Resolve a game and language-match its versions from the same record."""
        record = self.resolve_game(game_id)
        versions = [matched.to_dict() for matched in match_versions(record)]
        return record, versions

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _validate_query(self, query: Optional[str]) -> str:
        query = safe_strip(query)
        if len(query) < self.min_query_length:
            raise InvalidQueryError(
                f'Query parameter "q" is required and must be at least {self.min_query_length} characters'
            )
        return query

    def _fetch_search_items(self, query: str, game_type: Optional[str], exact: bool) -> List[SearchItem]:
        items = extract_search_items(self.client.search_games(query, game_type, exact))
        filtered = [item for item in items if matches_requested_type(item, game_type)]
        if len(filtered) != len(items):
            logger.info(f"Type filter {game_type}: kept {len(filtered)} of {len(items)} matches")
        return filtered

    def search(
        self,
        query: str,
        game_type: Optional[str] = GameType.BOARDGAME.value,
        exact: bool = False,
    ) -> SearchOutcome:
        """
        Full search: matches enriched with metadata for the top results.

        Enrichment is best-effort; ids whose metadata could not be resolved
        stay as bare matches with hasMetadata False. The type filter runs
        again on the enriched results, since metadata can reveal an
        expansion that BGG's search listed as a boardgame.
        """
        query = self._validate_query(query)
        options = {"type": game_type, "exact": exact}

        hit = self.cache.get_search_results(query, options)
        if hit is not None:
            return SearchOutcome(results=list(hit.results), total=len(hit.results), from_cache=True)

        started = time.monotonic()
        items = self._fetch_search_items(query, game_type, exact)
        payloads = [SearchResultPayload.from_search_item(item) for item in items]

        top_ids = [item.id for item in items[:self.search_metadata_batch_size]]
        if top_ids:
            try:
                resolution = self.resolve_batch(top_ids)
            except Exception as e:
                logger.warning(f"Search enrichment failed, returning bare matches: {e}")
            else:
                enriched = {result.game_id: result.game for result in resolution.results if result.ok}
                payloads = [
                    SearchResultPayload.from_metadata(enriched[payload.id], name=payload.name)
                    if payload.id in enriched else payload
                    for payload in payloads
                ]

        results = [payload.to_dict() for payload in payloads]
        kept = [result for result in results if matches_requested_kind(result, game_type)]
        if len(kept) != len(results):
            logger.info(f"Type filter {game_type} after enrichment: kept {len(kept)} of {len(results)} results")
        results = rank_search_results(kept, query)
        elapsed_ms = (time.monotonic() - started) * 1000
        self.cache.put_search_results(query, results, score=elapsed_ms, options=options, total=len(results))
        logger.info(f"Search '{query}': {len(results)} results in {elapsed_ms:.0f}ms")
        return SearchOutcome(results=results, total=len(results))

    def search_light(
        self,
        query: str,
        game_type: Optional[str] = GameType.BOARDGAME.value,
        exact: bool = False,
    ) -> SearchOutcome:
        """Fast search without metadata; callers enrich items on demand."""
        query = self._validate_query(query)
        options = {"type": game_type, "exact": exact, "light": True}

        hit = self.cache.get_search_results(query, options)
        if hit is not None:
            total = hit.total if hit.total is not None else len(hit.results)
            return SearchOutcome(
                results=[light_from_cached(entry) for entry in hit.results],
                total=total,
                has_more=total > self.search_page_size,
                from_cache=True,
            )

        started = time.monotonic()
        items = self._fetch_search_items(query, game_type, exact)
        page = items[:self.search_page_size]
        results = [SearchResultPayload.from_search_item(item).to_light_dict() for item in page]
        elapsed_ms = (time.monotonic() - started) * 1000
        self.cache.put_search_results(query, results, score=elapsed_ms, options=options, total=len(items))
        return SearchOutcome(
            results=results,
            total=len(items),
            has_more=len(items) > self.search_page_size,
        )

    def enhance_search(self, game_ids: List[str]) -> List[Dict[str, Any]]:
        """
        Metadata for light-search results the caller is about to show.

        Ids beyond enhance_max_ids are ignored. Ids that cannot be resolved
        come back as placeholders rather than failing the request.
        """
        limited = [safe_strip(game_id) for game_id in game_ids[:self.enhance_max_ids]]
        if not limited:
            return []

        resolution = self.resolve_batch(limited)
        enhanced = []
        for result in resolution.results:
            if result.ok:
                enhanced.append(SearchResultPayload.from_metadata(result.game).to_dict())
            else:
                logger.warning(f"Enhance search: no metadata for {result.game_id} ({result.error})")
                enhanced.append(SearchResultPayload.placeholder(result.game_id).to_dict())
        return enhanced
