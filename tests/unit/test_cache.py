"""
Unit Tests - Config Cache
"""
from liveops.models.schemas import ConfigResponse
from liveops.serving.cache import ConfigCache


class TestConfigCache:
    """Tests for TTL semantics"""

    def test_miss(self, cache):
        assert cache.get("player-1") is None

    def test_hit_returns_same_object(self, cache):
        response = ConfigResponse(config={"starting_gold": 100})
        cache.set("player-1", response)
        assert cache.get("player-1") is response

    def test_fresh_just_before_ttl(self, cache, clock):
        cache.set("player-1", "value")
        clock.advance(59.9)
        assert cache.get("player-1") == "value"

    def test_expires_at_ttl(self, cache, clock):
        cache.set("player-1", "value")
        clock.advance(60)
        assert cache.get("player-1") is None
        assert len(cache) == 0

    def test_set_refreshes_capture_time(self, cache, clock):
        cache.set("player-1", "old")
        clock.advance(50)
        cache.set("player-1", "new")
        clock.advance(50)
        assert cache.get("player-1") == "new"

    def test_keys_independent(self, cache):
        cache.set("player-1", "a")
        cache.set("player-2", "b")
        assert cache.get("player-1") == "a"
        assert cache.get("player-2") == "b"

    def test_delete(self, cache):
        cache.set("player-1", "a")
        assert cache.delete("player-1") is True
        assert cache.delete("player-1") is False
        assert cache.get("player-1") is None

    def test_invalidate_all(self, cache):
        for i in range(5):
            cache.set(f"player-{i}", i)
        assert cache.invalidate_all() == 5
        assert len(cache) == 0
        assert cache.get("player-0") is None

    def test_custom_ttl(self, clock):
        cache = ConfigCache(ttl_seconds=5, clock=clock)
        cache.set("k", "v")
        clock.advance(4)
        assert cache.get("k") == "v"
        clock.advance(1)
        assert cache.get("k") is None

    def test_set_sweeps_other_expired_entries(self, cache, clock):
        for i in range(1000):
            cache.set(f"player-{i}", i)
        clock.advance(3600)

        cache.set("late", "v")

        assert len(cache) == 1
        assert cache.get("late") == "v"

    def test_sweep_keeps_fresh_entries(self, cache, clock):
        cache.set("old", 1)
        clock.advance(30)
        cache.set("middle", 2)
        clock.advance(30)

        cache.set("new", 3)

        assert len(cache) == 2
        assert cache.get("middle") == 2

    def test_refreshed_key_not_swept_with_its_old_position(self, cache, clock):
        cache.set("a", 1)
        cache.set("b", 2)
        clock.advance(50)
        cache.set("a", 10)
        clock.advance(20)

        cache.set("c", 3)

        assert cache.get("a") == 10
        assert cache.get("b") is None
        assert len(cache) == 2
