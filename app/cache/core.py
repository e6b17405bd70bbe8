"""
Core cache data structures.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


class CacheNamespace(Enum):
    """Independent storage pools with their own keys, TTLs and counters."""
    METADATA = "metadata"   # one entry per BGG game id
    SEARCH = "search"       # one entry per normalized query + options


@dataclass
class CacheEntry:
    """
    Represents a cached item with the time it was stored and its TTL.

    Timestamps come from the owning manager's clock, so freshness is always
    evaluated against an explicit ``now`` rather than the wall clock.
    """
    data: Any
    fetched_at: float
    ttl_seconds: float
    namespace: CacheNamespace = CacheNamespace.METADATA

    def age_seconds(self, now: float) -> float:
        """Seconds since data was stored."""
        return now - self.fetched_at

    def is_fresh(self, now: float) -> bool:
        """Check if data is within its TTL."""
        return self.age_seconds(now) < self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return not self.is_fresh(now)


@dataclass
class SearchResultSet:
    """Cached value of the search namespace."""
    query: str
    options: Dict[str, Any]
    results: List[Dict[str, Any]]
    score: float = 0.0  # search time in ms, feeds the adaptive TTL
    total: Optional[int] = None  # upstream match count before paging


@dataclass
class NamespaceStats:
    """Counters for one namespace."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    entries: int = 0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups served from cache (0.0 when nothing was looked up)."""
        if self.lookups == 0:
            return 0.0
        return self.hits / self.lookups

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "entries": self.entries,
        }


@dataclass
class CacheStatistics:
    """
    Snapshot of cache counters, computed on demand by the manager.
    """
    metadata: NamespaceStats = field(default_factory=NamespaceStats)
    search: NamespaceStats = field(default_factory=NamespaceStats)

    @property
    def size(self) -> int:
        return self.metadata.entries + self.search.entries

    @property
    def cache_hits(self) -> int:
        return self.metadata.hits + self.search.hits

    @property
    def total_queries(self) -> int:
        return self.metadata.lookups + self.search.lookups

    @property
    def hit_rate(self) -> float:
        if self.total_queries == 0:
            return 0.0
        return self.cache_hits / self.total_queries

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "size": self.size,
            "hitRate": round(self.hit_rate * 100, 2),
            "totalQueries": self.total_queries,
            "cacheHits": self.cache_hits,
            "namespaces": {
                CacheNamespace.METADATA.value: self.metadata.to_dict(),
                CacheNamespace.SEARCH.value: self.search.to_dict(),
            },
        }
