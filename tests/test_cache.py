from gallery_client.cache import (
    TTLCache,
    comments_key,
    follow_stats_key,
    follow_status_key,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def test_get_returns_value_within_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl=120, clock=clock)
    cache.set("k", {"followers": 3})

    clock.advance(119)
    assert cache.get("k") == {"followers": 3}


def test_value_still_served_exactly_at_expiry():
    clock = FakeClock()
    cache = TTLCache(ttl=120, clock=clock)
    cache.set("k", "v")

    clock.advance(120)
    assert cache.get("k") == "v"


def test_expired_entry_is_a_miss_and_purged():
    clock = FakeClock()
    cache = TTLCache(ttl=120, clock=clock)
    cache.set("k", "v")

    clock.advance(120.5)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_missing_key_is_a_miss():
    assert TTLCache().get("nope") is None


def test_false_is_cached_not_a_miss():
    cache = TTLCache(ttl=60, clock=FakeClock())
    cache.set("status", False)
    assert cache.get("status") is False
    assert "status" in cache


def test_set_overwrites_and_restarts_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl=10, clock=clock)
    cache.set("k", 1)
    clock.advance(8)
    cache.set("k", 2)
    clock.advance(8)
    assert cache.get("k") == 2


def test_per_entry_ttl_override():
    clock = FakeClock()
    cache = TTLCache(ttl=300, clock=clock)
    cache.set("short", "a", ttl=60)
    cache.set("long", "b")

    clock.advance(61)
    assert cache.get("short") is None
    assert cache.get("long") == "b"


def test_invalidate_removes_only_that_key():
    cache = TTLCache(ttl=60, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)

    cache.invalidate("a")
    cache.invalidate("missing")

    assert cache.get("a") is None
    assert cache.get("b") == 2


def test_invalidate_matching_counts_removed_keys():
    cache = TTLCache(ttl=60, clock=FakeClock())
    cache.set(comments_key("img1", 20), [1])
    cache.set(comments_key("img1", 50), [2])
    cache.set(comments_key("img2", 20), [3])

    removed = cache.invalidate_matching("comments:img1:")

    assert removed == 2
    assert cache.get(comments_key("img2", 20)) == [3]


def test_clear():
    cache = TTLCache(ttl=60, clock=FakeClock())
    cache.set("a", 1)
    cache.clear()
    assert len(cache) == 0


def test_key_helpers():
    assert follow_status_key("u1", "u2") == "follow:status:u1:u2"
    assert follow_stats_key("u1") == "follow:stats:u1"
    assert comments_key("img", 20) == "comments:img:20"
