"""
Tests for ResponseCache: lazy TTL expiry and insertion-order eviction.
"""

from __future__ import annotations

from calendar_gaps.transport.cache import ResponseCache, credential_scope, make_cache_key


def test_get_returns_none_when_absent(clock):
    cache = ResponseCache(clock=clock)
    assert cache.get("GET:https://x:") is None


def test_set_then_get_within_ttl(clock):
    cache = ResponseCache(ttl_minutes=5, clock=clock)
    cache.set("k", {"items": []})

    clock.advance(300)  # exactly the TTL is still fresh
    assert cache.get("k") == {"items": []}


def test_entry_expires_after_ttl_even_without_size_pressure(clock):
    cache = ResponseCache(max_size=100, ttl_minutes=5, clock=clock)
    cache.set("k", {"v": 1})

    clock.advance(301)
    assert cache.get("k") is None
    assert len(cache) == 0, "Expired entry should be dropped on read"


def test_oldest_inserted_entry_is_evicted_not_least_recently_read(clock):
    cache = ResponseCache(max_size=3, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    # Reading "a" must not protect it: eviction is by insertion order
    assert cache.get("a") == 1
    cache.set("d", 4)

    assert cache.get("a") is None
    assert [cache.get(k) for k in ("b", "c", "d")] == [2, 3, 4]
    assert len(cache) == 3


def test_overwrite_refreshes_entry_without_evicting(clock):
    cache = ResponseCache(max_size=2, ttl_minutes=5, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    clock.advance(200)
    cache.set("a", 10)
    assert len(cache) == 2

    clock.advance(200)  # "b" is now 400s old, "a" only 200s
    assert cache.get("b") is None
    assert cache.get("a") == 10


def test_invalidate_and_clear(clock):
    cache = ResponseCache(clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.invalidate("a")
    cache.invalidate("missing")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert len(cache) == 0


def test_cache_key_is_method_url_body_exact():
    assert make_cache_key("get", "https://x/a?b=1") == "GET:https://x/a?b=1:"
    assert make_cache_key("POST", "https://x/a", '{"q":1}') == 'POST:https://x/a:{"q":1}'
    # No normalization: parameter order matters
    assert make_cache_key("GET", "https://x/a?b=1&c=2") != make_cache_key("GET", "https://x/a?c=2&b=1")


def test_scoped_keys_are_separate_namespaces():
    alice = credential_scope("Bearer alice")
    bob = credential_scope("Bearer bob")

    assert alice != bob
    assert credential_scope(None) == ""
    assert "alice" not in alice, "The credential itself must not appear in the key"
    assert make_cache_key("GET", "https://x/a", scope=alice) != make_cache_key("GET", "https://x/a", scope=bob)
    assert make_cache_key("GET", "https://x/a", scope=alice) == make_cache_key("GET", "https://x/a", scope=alice)
