"""Tests for the response cache."""

from __future__ import annotations

from vinexport.core.cache import DEFAULT_TTL_MS, ResponseCache


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


SCHEMA = {"type": "object", "properties": {"name": {"type": "string"}}}


class TestCacheKeys:
    """Tests for cache key generation."""

    def test_key_is_deterministic(self) -> None:
        cache = ResponseCache()
        assert cache.make_key("p", SCHEMA, "m", "fr") == cache.make_key("p", SCHEMA, "m", "fr")
        assert len(cache.make_key("p", SCHEMA, "m")) == 32

    def test_schema_key_order_ignored(self) -> None:
        """Schemas with the same content but different key order share a key."""
        cache = ResponseCache()
        reordered = {"properties": {"name": {"type": "string"}}, "type": "object"}
        assert cache.make_key("p", SCHEMA, "m") == cache.make_key("p", reordered, "m")

    def test_argument_positions_matter(self) -> None:
        """Swapping prompt and model produces a different key."""
        cache = ResponseCache()
        assert cache.make_key("a", None, "b") != cache.make_key("b", None, "a")

    def test_language_is_part_of_key(self) -> None:
        cache = ResponseCache()
        assert cache.make_key("p", SCHEMA, "m", "fr") != cache.make_key("p", SCHEMA, "m", "en")
        assert cache.make_key("p", SCHEMA, "m") != cache.make_key("p", SCHEMA, "m", "en")


class TestCacheLookup:
    """Tests for get/set, hits and expiry."""

    def test_miss_then_hit(self) -> None:
        cache = ResponseCache()
        assert cache.get("p", SCHEMA, "m") is None

        cache.set("p", SCHEMA, "m", {"name": "Margaux"})
        assert cache.get("p", SCHEMA, "m") == {"name": "Margaux"}
        assert cache.get_stats().total_hits == 1

    def test_hit_returns_stored_object(self) -> None:
        cache = ResponseCache()
        result = {"name": "Château Margaux", "vintage": 2020}
        cache.set("p", SCHEMA, "m", result)
        assert cache.get("p", SCHEMA, "m") is result

    def test_language_isolated(self) -> None:
        """A result stored for one language is not served for another."""
        cache = ResponseCache()
        cache.set("p", SCHEMA, "m", "bonjour", lang="fr")
        assert cache.get("p", SCHEMA, "m", "fr") == "bonjour"
        assert cache.get("p", SCHEMA, "m", "en") is None

    def test_overwrite_resets_hits(self) -> None:
        cache = ResponseCache()
        cache.set("p", None, "m", 1)
        cache.get("p", None, "m")
        cache.set("p", None, "m", 2)
        assert cache.get_stats().total_hits == 0
        assert cache.get("p", None, "m") == 2

    def test_expired_entry_removed_on_access(self) -> None:
        """Entries past their TTL miss and are dropped."""
        clock = FakeClock()
        cache = ResponseCache(clock=clock)
        cache.set("p", None, "m", "value", ttl_ms=5000)

        clock.now += 5
        assert cache.get("p", None, "m") == "value"

        clock.now += 0.001
        assert cache.get("p", None, "m") is None
        assert len(cache) == 0

    def test_default_ttl_is_one_day(self) -> None:
        clock = FakeClock()
        cache = ResponseCache(clock=clock)
        cache.set("p", None, "m", "value")

        clock.now += DEFAULT_TTL_MS / 1000 - 1
        assert cache.get("p", None, "m") == "value"
        clock.now += 2
        assert cache.get("p", None, "m") is None


class TestCacheEviction:
    """Tests for size-bounded cleanup."""

    def test_least_hit_entries_evicted(self) -> None:
        """Growing past max_entries drops the evict_count least-hit entries."""
        cache = ResponseCache(max_entries=10, evict_count=3)
        for i in range(10):
            cache.set(f"p{i}", None, "m", i)

        # Every entry except p0..p2 gets a hit
        for i in range(3, 10):
            cache.get(f"p{i}", None, "m")

        cache.set("p10", None, "m", 10)

        assert len(cache) == 8
        for i in range(3):
            assert cache.get(f"p{i}", None, "m") is None
        for i in range(3, 10):
            assert cache.get(f"p{i}", None, "m") == i

    def test_expired_entries_dropped_first(self) -> None:
        """When expiry alone brings the size back under the cap, nothing else is evicted."""
        clock = FakeClock()
        cache = ResponseCache(max_entries=3, evict_count=2, clock=clock)
        cache.set("old", None, "m", "old", ttl_ms=1000)
        cache.set("a", None, "m", "a")
        cache.set("b", None, "m", "b")

        clock.now += 2
        cache.set("c", None, "m", "c")

        assert len(cache) == 3
        assert cache.get("a", None, "m") == "a"
        assert cache.get("c", None, "m") == "c"

    def test_default_limits(self) -> None:
        cache = ResponseCache()
        for i in range(1001):
            cache.set(f"p{i}", None, "m", i)
        assert len(cache) == 801


class TestCacheAdmin:
    """Tests for stats and clearing."""

    def test_stats(self) -> None:
        cache = ResponseCache()
        cache.set("a", None, "m", 1)
        cache.set("b", None, "m", 2)
        cache.get("a", None, "m")
        cache.get("a", None, "m")
        cache.get("b", None, "m")

        stats = cache.get_stats()
        assert stats.size == 2
        assert stats.total_hits == 3

    def test_clear(self) -> None:
        cache = ResponseCache()
        cache.set("a", None, "m", 1)
        cache.clear()
        assert cache.get_stats().size == 0
        assert cache.get("a", None, "m") is None
