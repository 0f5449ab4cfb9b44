"""
Unit tests for the per-user review cache.
"""

from companion.cache import ANALYTICS, QUEUE, ReviewCache


class TestReviewCache:
    def test_set_and_get(self):
        cache = ReviewCache(queue_ttl=60)
        cache.set(QUEUE, "alice", ["item"], 20)

        assert cache.get(QUEUE, "alice", 20) == ["item"]
        assert cache.get(QUEUE, "alice", 10) is None

    def test_zero_ttl_disables(self):
        cache = ReviewCache(queue_ttl=60, analytics_ttl=0)
        cache.set(ANALYTICS, "alice", {"report": 1})

        assert cache.get(ANALYTICS, "alice") is None

    def test_invalidate_user(self):
        cache = ReviewCache(queue_ttl=60, analytics_ttl=60)
        cache.set(QUEUE, "alice", [1], 20)
        cache.set(QUEUE, "alice", [2], 5)
        cache.set(ANALYTICS, "alice", {"a": 1})
        cache.set(QUEUE, "bob", [3], 20)

        assert cache.invalidate_user("alice") == 3
        assert cache.get(QUEUE, "alice", 20) is None
        assert cache.get(ANALYTICS, "alice") is None
        assert cache.get(QUEUE, "bob", 20) == [3]

    def test_clear(self):
        cache = ReviewCache(queue_ttl=60)
        cache.set(QUEUE, "alice", [1], 20)
        cache.clear()

        assert cache.get(QUEUE, "alice", 20) is None

    def test_from_config(self):
        cache = ReviewCache.from_config({"queue_ttl": 0, "analytics_ttl": 10})
        cache.set(QUEUE, "alice", [1])
        cache.set(ANALYTICS, "alice", {"a": 1})

        assert cache.get(QUEUE, "alice") is None
        assert cache.get(ANALYTICS, "alice") == {"a": 1}

    def test_result_read_before_invalidation_is_dropped(self):
        cache = ReviewCache(queue_ttl=60)
        generation = cache.generation("alice")

        cache.invalidate_user("alice")
        stored = cache.set(QUEUE, "alice", ["stale"], 20, generation=generation)

        assert stored is False
        assert cache.get(QUEUE, "alice", 20) is None

    def test_current_generation_is_stored(self):
        cache = ReviewCache(queue_ttl=60)
        cache.invalidate_user("alice")
        generation = cache.generation("alice")

        assert cache.set(QUEUE, "alice", ["fresh"], 20, generation=generation) is True
        assert cache.get(QUEUE, "alice", 20) == ["fresh"]

    def test_generations_are_per_user(self):
        cache = ReviewCache(queue_ttl=60)
        generation = cache.generation("bob")

        cache.invalidate_user("alice")

        assert cache.set(QUEUE, "bob", ["ok"], 20, generation=generation) is True
