"""
Namespaced in-memory cache for BGG game metadata and search results.
"""
import json
import threading
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Optional

from .core import (
    CacheEntry,
    CacheNamespace,
    CacheStatistics,
    NamespaceStats,
    SearchResultSet,
)
from .ttl_policies import calculate_search_ttl, get_ttl_for_namespace

logger = logging.getLogger("cache.manager")

DEFAULT_MAX_ENTRIES = 1000


def build_search_key(query: str, options: Optional[Dict[str, Any]] = None) -> str:
    """
    Build the cache key for a search query.

    The query is trimmed and lower-cased; options are serialized with sorted
    keys and ``None`` values dropped, so logically identical searches always
    land in the same slot.
    """
    normalized = (query or "").strip().lower()
    clean_options = {k: v for k, v in (options or {}).items() if v is not None}
    if not clean_options:
        return f"search:{normalized}"
    serialized = json.dumps(clean_options, sort_keys=True, separators=(",", ":"))
    return f"search:{normalized}:{serialized}"


class CacheManager:
    """
    Process-wide cache with two independent namespaces:
    - metadata: game records keyed by BGG id
    - search: result sets keyed by normalized query + filter options

    Expiry is checked lazily on every read, there is no background sweep.
    All map and counter mutations happen under one re-entrant lock, so the
    manager can be shared by concurrent request handlers.
    """

    def __init__(
        self,
        metadata_ttl_seconds: Optional[float] = None,
        search_ttl_seconds: Optional[float] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache manager.

        Args:
            metadata_ttl_seconds: TTL for game metadata (default from TTL_CONFIG)
            search_ttl_seconds: Base TTL for search results (default from TTL_CONFIG)
            max_entries: Maximum entries kept per namespace
            clock: Time source in seconds, injectable for tests

        Raises:
            ValueError: If the metadata TTL is shorter than the search TTL
        """
        self.metadata_ttl = (
            metadata_ttl_seconds
            if metadata_ttl_seconds is not None
            else get_ttl_for_namespace(CacheNamespace.METADATA)
        )
        self.search_ttl = (
            search_ttl_seconds
            if search_ttl_seconds is not None
            else get_ttl_for_namespace(CacheNamespace.SEARCH)
        )
        if self.metadata_ttl < self.search_ttl:
            raise ValueError(
                f"metadata TTL ({self.metadata_ttl}s) must not be shorter "
                f"than search TTL ({self.search_ttl}s)"
            )
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.RLock()

        # Insertion-ordered so the oldest entry is always first
        self._stores: Dict[CacheNamespace, "OrderedDict[str, CacheEntry]"] = {
            CacheNamespace.METADATA: OrderedDict(),
            CacheNamespace.SEARCH: OrderedDict(),
        }
        self._stats: Dict[CacheNamespace, Dict[str, int]] = {}
        self._reset_stats()

    # ------------------------------------------------------------------
    # Metadata namespace
    # ------------------------------------------------------------------

    def get_metadata(self, game_id: str) -> Optional[Any]:
        """
        Get cached metadata for one game.

        Returns:
            The stored record, or None if never stored or expired
        """
        entry = self._lookup(CacheNamespace.METADATA, str(game_id))
        return entry.data if entry is not None else None

    def put_metadata(self, record: Any) -> bool:
        """
        Store or overwrite a metadata record by its id.

        The record is stored as-is; completeness is the caller's concern.

        Returns:
            True if stored, False if the record has no usable id
        """
        game_id = getattr(record, "id", None)
        if game_id is None and isinstance(record, dict):
            game_id = record.get("id")
        if not game_id:
            logger.warning(f"Skipping metadata record without id: {record!r:.80}")
            return False

        self._store(
            CacheNamespace.METADATA,
            str(game_id),
            record,
            self.metadata_ttl,
        )
        return True

    def put_metadata_batch(self, records: Iterable[Any]) -> int:
        """
        Store several metadata records.

        Each record is stored independently; a malformed record is logged
        and skipped without affecting the others.

        Returns:
            Number of records stored
        """
        stored = 0
        for record in records:
            try:
                if self.put_metadata(record):
                    stored += 1
            except Exception as e:
                logger.warning(f"Failed to cache metadata record: {e}")
        logger.debug(f"Cached {stored} metadata records")
        return stored

    # ------------------------------------------------------------------
    # Search namespace
    # ------------------------------------------------------------------

    def get_search_results(
        self,
        query: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> Optional[SearchResultSet]:
        """Get cached results for a search, or None on miss/expiry."""
        entry = self._lookup(CacheNamespace.SEARCH, build_search_key(query, options))
        return entry.data if entry is not None else None

    def put_search_results(
        self,
        query: str,
        results: List[Dict[str, Any]],
        score: float = 0.0,
        options: Optional[Dict[str, Any]] = None,
        total: Optional[int] = None,
    ) -> float:
        """
        Store search results under the normalized (query, options) key.

        Args:
            query: Raw query text
            results: Ordered result entries
            score: Search time in milliseconds
            options: Filter options (type, exact flag)
            total: Upstream match count before paging

        Returns:
            TTL in seconds applied to the entry
        """
        ttl = calculate_search_ttl(
            search_time_ms=score,
            result_count=len(results),
            base_ttl=self.search_ttl,
            ceiling=self.metadata_ttl,
        )
        result_set = SearchResultSet(
            query=query,
            options=dict(options or {}),
            results=list(results),
            score=score,
            total=total,
        )
        self._store(
            CacheNamespace.SEARCH,
            build_search_key(query, options),
            result_set,
            ttl,
        )
        return ttl

    def invalidate_search(
        self,
        query: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Drop the cached results for one search.

        Returns:
            True if an entry was found and removed
        """
        key = build_search_key(query, options)
        with self._lock:
            store = self._stores[CacheNamespace.SEARCH]
            if key in store:
                del store[key]
                logger.info(f"Invalidated cache: {key}")
                return True
            return False

    # ------------------------------------------------------------------
    # Statistics and maintenance
    # ------------------------------------------------------------------

    def get_statistics(self) -> CacheStatistics:
        """Snapshot of counters and entry counts. Does not mutate state."""
        with self._lock:
            return CacheStatistics(
                metadata=self._namespace_stats(CacheNamespace.METADATA),
                search=self._namespace_stats(CacheNamespace.SEARCH),
            )

    def get_efficiency(self) -> Dict[str, Any]:
        """
        Hit rates derived from the current statistics.

        Rates are fractions in [0, 1]; the ``*Percent`` fields are the same
        values rounded for display.
        """
        stats = self.get_statistics()
        return {
            "metadataHitRate": stats.metadata.hit_rate,
            "searchHitRate": stats.search.hit_rate,
            "overallHitRate": stats.hit_rate,
            "metadataHitRatePercent": round(stats.metadata.hit_rate * 100, 2),
            "searchHitRatePercent": round(stats.search.hit_rate * 100, 2),
            "overallHitRatePercent": round(stats.hit_rate * 100, 2),
            "totalMemorySize": stats.size,
        }

    def clear_all(self) -> int:
        """
        Empty both namespaces and reset all counters.

        Returns:
            Number of entries cleared
        """
        with self._lock:
            count = sum(len(store) for store in self._stores.values())
            for store in self._stores.values():
                store.clear()
            self._reset_stats()
        logger.info(f"Cleared {count} cache entries")
        return count

    def keys(self, namespace: CacheNamespace) -> List[str]:
        """Current keys of a namespace, oldest first (expired ones included)."""
        with self._lock:
            return list(self._stores[namespace].keys())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lookup(self, namespace: CacheNamespace, key: str) -> Optional[CacheEntry]:
        """Read an entry, applying lazy expiry and hit/miss accounting."""
        now = self._clock()
        with self._lock:
            store = self._stores[namespace]
            stats = self._stats[namespace]
            entry = store.get(key)

            if entry is None:
                stats["misses"] += 1
                logger.debug(f"CACHE MISS: {key}")
                return None

            if entry.is_expired(now):
                del store[key]
                stats["evictions"] += 1
                stats["misses"] += 1
                logger.debug(
                    f"CACHE EXPIRED: {key} [age={entry.age_seconds(now):.1f}s]"
                )
                return None

            stats["hits"] += 1
            logger.debug(f"CACHE HIT: {key} [age={entry.age_seconds(now):.1f}s]")
            return entry

    def _store(
        self,
        namespace: CacheNamespace,
        key: str,
        data: Any,
        ttl_seconds: float,
    ) -> None:
        """Store data and enforce the per-namespace size bound."""
        entry = CacheEntry(
            data=data,
            fetched_at=self._clock(),
            ttl_seconds=ttl_seconds,
            namespace=namespace,
        )
        with self._lock:
            store = self._stores[namespace]
            # Overwrites move the key to the newest position
            store.pop(key, None)
            store[key] = entry
            self._enforce_size_limit(namespace)

    def _enforce_size_limit(self, namespace: CacheNamespace) -> None:
        store = self._stores[namespace]
        overflow = len(store) - self.max_entries
        if overflow <= 0:
            return
        for _ in range(overflow):
            key, _entry = store.popitem(last=False)
            logger.debug(f"Evicted oldest {namespace.value} entry: {key}")
        self._stats[namespace]["evictions"] += overflow

    def _namespace_stats(self, namespace: CacheNamespace) -> NamespaceStats:
        stats = self._stats[namespace]
        return NamespaceStats(
            hits=stats["hits"],
            misses=stats["misses"],
            evictions=stats["evictions"],
            entries=len(self._stores[namespace]),
        )

    def _reset_stats(self) -> None:
        self._stats = {
            namespace: {"hits": 0, "misses": 0, "evictions": 0}
            for namespace in CacheNamespace
        }
