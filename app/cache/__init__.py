"""
In-memory caching for BGG metadata and search results, with per-namespace TTL.
"""
from .core import (
    CacheEntry,
    CacheNamespace,
    CacheStatistics,
    NamespaceStats,
    SearchResultSet,
)
from .ttl_policies import (
    TTL_CONFIG,
    calculate_search_ttl,
    get_ttl_for_namespace,
)
from .manager import CacheManager, build_search_key

__all__ = [
    # Core types
    "CacheEntry",
    "CacheNamespace",
    "CacheStatistics",
    "NamespaceStats",
    "SearchResultSet",
    # TTL policies
    "TTL_CONFIG",
    "calculate_search_ttl",
    "get_ttl_for_namespace",
    # Manager
    "CacheManager",
    "build_search_key",
]
