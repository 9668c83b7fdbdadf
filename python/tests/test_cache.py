"""Tests for the in-memory TTL cache."""

from clipper.services.cache import TTLCache, cache_key
from tests.helpers import FakeClock


class TestTTLCache:
    """Expiry is driven entirely by the injected clock."""

    def test_get_before_expiry(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)

        cache.set("k", "v", ttl_s=1)
        clock.advance(0.5)

        assert cache.get("k") == "v"

    def test_miss_after_expiry(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)

        cache.set("k", "v", ttl_s=1)
        clock.advance(1.1)

        assert cache.get("k") is None

    def test_expired_exactly_at_deadline(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)

        cache.set("k", "v", ttl_s=10)
        clock.advance(10)

        assert cache.get("k") is None

    def test_set_overwrites_and_refreshes(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)

        cache.set("k", "old", ttl_s=5)
        clock.advance(4)
        cache.set("k", "new", ttl_s=5)
        clock.advance(4)

        assert cache.get("k") == "new"

    def test_delete(self):
        cache = TTLCache(clock=FakeClock())
        cache.set("k", "v", ttl_s=5)

        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.get("k") is None

    def test_cleanup_and_size(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("short", 1, ttl_s=1)
        cache.set("long", 2, ttl_s=100)

        clock.advance(2)

        assert cache.cleanup() == 1
        assert cache.size == 1

    def test_missing_key(self):
        assert TTLCache(clock=FakeClock()).get("nope") is None

    def test_cache_key(self):
        assert cache_key("token", "a@b.c") == "token:a@b.c"
        assert cache_key("preview", "https://x.test/") == "preview:https://x.test/"
