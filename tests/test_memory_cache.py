"""Tests for the in-memory cache tier and cache key helpers."""

from explorer_gateway.cache import CacheEntry, MemoryCache, cache_key, params_suffix


def test_set_and_get(clock):
    cache = MemoryCache(clock=clock)
    cache.set("v1_validators_cosmoshub", {"validators": []}, ttl=30)

    assert cache.get("v1_validators_cosmoshub") == {"validators": []}
    assert "v1_validators_cosmoshub" in cache
    assert cache.get("missing") is None


def test_expired_entry_is_a_strict_miss_but_stays_stale(clock):
    """Test that expiry hides an entry from get but not from get_stale."""
    cache = MemoryCache(clock=clock)
    cache.set("key", "value", ttl=10)

    clock.advance(9.9)
    assert cache.get("key") == "value"

    clock.advance(0.1)
    assert cache.get("key") is None
    assert "key" not in cache
    assert cache.get_stale("key") == "value"
    assert cache.get_entry("key").is_expired(clock())


def test_default_ttl(clock):
    cache = MemoryCache(default_ttl=5, clock=clock)
    entry = cache.set("key", 1)

    assert entry.expires_at == clock() + 5


def test_set_replaces_existing_entry(clock):
    cache = MemoryCache(clock=clock)
    cache.set("key", "old", ttl=1)
    clock.advance(5)
    cache.set("key", "new", ttl=10)

    assert cache.get("key") == "new"
    assert len(cache) == 1


def test_put_entry_keeps_expiry(clock):
    """Test that promoted entries keep their original expiry."""
    cache = MemoryCache(clock=clock)
    entry = CacheEntry("key", "value", ttl=10, created_at=clock() - 4)

    cache.put_entry(entry)

    assert cache.get_entry("key").remaining_ttl(clock()) == 6


def test_clear_by_pattern(clock):
    cache = MemoryCache(clock=clock)
    cache.set("v1_validators_osmosis", 1)
    cache.set("v1_blocks_osmosis", 2)
    cache.set("v1_blocks_cosmoshub", 3)

    removed = cache.clear_by_pattern("osmosis")

    assert removed == 2
    assert cache.keys() == ["v1_blocks_cosmoshub"]


def test_cleanup_expired(clock):
    cache = MemoryCache(clock=clock)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2, ttl=50)

    clock.advance(10)

    assert cache.cleanup_expired() == 1
    assert cache.keys() == ["long"]


def test_remove_and_clear(clock):
    cache = MemoryCache(clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.remove("a")
    cache.remove("never-set")
    assert cache.keys() == ["b"]

    cache.clear()
    assert len(cache) == 0


def test_cache_key_format():
    assert cache_key("validators", "cosmoshub") == "v1_validators_cosmoshub"
    assert cache_key("block", "osmosis", "12345") == "v1_block_osmosis_12345"
    assert cache_key("block", "osmosis", version="v2") == "v2_block_osmosis"


def test_params_suffix_is_order_independent():
    first = params_suffix({"height": 10, "limit": 5})
    second = params_suffix({"limit": 5, "height": 10})

    assert first == second
    assert len(first) == 16
    assert params_suffix({"height": 11}) != params_suffix({"height": 10})


def test_params_suffix_empty():
    assert params_suffix(None) is None
    assert params_suffix({}) is None
