"""Tiered caching with stale-while-revalidate resolution."""

from explorer_gateway.cache.durable import DurableCache
from explorer_gateway.cache.keys import CACHE_VERSION, cache_key, params_suffix
from explorer_gateway.cache.memory import Backend, CacheEntry, MemoryCache
from explorer_gateway.cache.session import SessionStore
from explorer_gateway.cache.swr import StaleWhileRevalidate
from explorer_gateway.cache.tiered import TieredCache

__all__ = [
    "CACHE_VERSION",
    "Backend",
    "CacheEntry",
    "DurableCache",
    "MemoryCache",
    "SessionStore",
    "StaleWhileRevalidate",
    "TieredCache",
    "cache_key",
    "params_suffix",
]
