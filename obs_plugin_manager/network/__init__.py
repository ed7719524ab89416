"""Outbound HTTP access: response cache and request governor."""

from obs_plugin_manager.network.cache import CacheEntry, ResponseCache, make_cache_key
from obs_plugin_manager.network.governor import (
    GovernorStats,
    QueuedRequest,
    RequestGovernor,
    classify_response,
    classify_transport_error,
)

__all__ = [
    "CacheEntry",
    "GovernorStats",
    "QueuedRequest",
    "RequestGovernor",
    "ResponseCache",
    "classify_response",
    "classify_transport_error",
    "make_cache_key",
]
