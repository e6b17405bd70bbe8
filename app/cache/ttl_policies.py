"""
TTL configuration per cache namespace and adaptive TTL for search results.
"""
from typing import Dict, Any

from .core import CacheNamespace


# TTL Configuration by namespace (in seconds)
TTL_CONFIG: Dict[CacheNamespace, Dict[str, Any]] = {
    CacheNamespace.METADATA: {
        "ttl": 7 * 24 * 60 * 60,  # 7 days, game metadata rarely changes
    },
    CacheNamespace.SEARCH: {
        "ttl": 30 * 60,           # 30 minutes, rank/availability drift faster
        "max_multiplier": 2.0,    # adaptive TTL never exceeds 2x base
    },
}

# Search-time thresholds (milliseconds) for the adaptive TTL
FAST_SEARCH_MS = 1000
SLOW_SEARCH_MS = 5000

# Result-count thresholds for the adaptive TTL
MANY_RESULTS = 20
FEW_RESULTS = 5


def get_ttl_for_namespace(namespace: CacheNamespace) -> int:
    """Default TTL in seconds for a namespace."""
    return TTL_CONFIG[namespace]["ttl"]


def calculate_search_ttl(
    search_time_ms: float,
    result_count: int,
    base_ttl: float,
    ceiling: float,
) -> float:
    """
    Calculate TTL for a search result set from how it was produced.

    Fast searches and comprehensive result sets are kept longer, slow
    searches and sparse result sets expire sooner.

    Args:
        search_time_ms: How long the upstream search took
        result_count: Number of results being cached
        base_ttl: Configured search TTL in seconds
        ceiling: Upper bound, normally the metadata TTL

    Returns:
        TTL in seconds, at most min(2 * base_ttl, ceiling)
    """
    ttl = float(base_ttl)

    if search_time_ms < FAST_SEARCH_MS:
        ttl *= 1.5
    elif search_time_ms > SLOW_SEARCH_MS:
        ttl *= 0.5

    if result_count > MANY_RESULTS:
        ttl *= 1.2
    elif result_count < FEW_RESULTS:
        ttl *= 0.8

    max_ttl = base_ttl * TTL_CONFIG[CacheNamespace.SEARCH]["max_multiplier"]
    return min(ttl, max_ttl, ceiling)
