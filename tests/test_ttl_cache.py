"""Unit tests for the in-memory TTLCache."""

import threading

import pytest

from app.schemas.users import UserRecord
from app.utils.ttl_cache import TTLCache


class FakeClock:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def _user(user_id: int = 1) -> UserRecord:
    return UserRecord(id=user_id, name=f"User {user_id}", email=f"u{user_id}@example.com")


def test_set_and_get_updates_hit_miss_counters() -> None:
    cache = TTLCache(ttl_seconds=10)

    assert cache.get("missing") is None

    user = _user()
    cache.set("1", user)

    assert cache.get("1") == user

    status = cache.status()
    assert status["hits"] == 1
    assert status["misses"] == 1
    assert status["size"] == 1


def test_entry_is_readable_until_ttl_and_absent_from_ttl_on() -> None:
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set("1", _user())

    clock.advance(59.5)
    assert cache.get("1") is not None

    clock.advance(0.5)
    assert cache.get("1") is None


def test_get_does_not_extend_ttl() -> None:
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("1", _user())

    for _ in range(9):
        clock.advance(1)
        assert cache.get("1") is not None

    clock.advance(1)
    assert cache.get("1") is None


def test_overwrite_resets_ttl() -> None:
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("1", _user())

    clock.advance(8)
    cache.set("1", _user())
    clock.advance(8)

    assert cache.get("1") is not None


def test_capacity_evicts_least_recently_set_key() -> None:
    cache = TTLCache(ttl_seconds=100, max_entries=3)
    for key in ("a", "b", "c"):
        cache.set(key, _user())

    cache.set("d", _user())

    assert cache.size() == 3
    assert cache.get("a") is None
    assert cache.get("b") is not None
    assert cache.get("c") is not None
    assert cache.get("d") is not None
    assert cache.stats()["evictions"] == 1


def test_reads_do_not_protect_from_eviction() -> None:
    cache = TTLCache(ttl_seconds=100, max_entries=2)
    cache.set("a", _user(1))
    cache.set("b", _user(2))

    # Reading "a" does not make it recent; only writes do
    assert cache.get("a") == _user(1)

    cache.set("c", _user(3))

    assert cache.get("a") is None
    assert cache.get("b") == _user(2)
    assert cache.get("c") == _user(3)


def test_overwrite_counts_as_fresh_insertion_for_recency() -> None:
    cache = TTLCache(ttl_seconds=100, max_entries=2)
    cache.set("a", _user(1))
    cache.set("b", _user(2))
    cache.set("a", _user(1))

    cache.set("c", _user(3))

    assert cache.get("b") is None
    assert cache.get("a") == _user(1)


def test_size_never_exceeds_capacity() -> None:
    cache = TTLCache(ttl_seconds=100, max_entries=5)
    for idx in range(50):
        cache.set(str(idx), _user(idx))
        assert cache.size() <= 5

    assert cache.size() == 5


def test_size_excludes_expired_entries_before_any_sweep() -> None:
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set("old", _user(1))
    clock.advance(30)
    cache.set("new", _user(2))

    clock.advance(31)

    assert cache.size() == 1
    assert cache.stats()["expirations"] == 1
    assert cache.get("new") == _user(2)


def test_clear_removes_entries_but_keeps_counters() -> None:
    cache = TTLCache(ttl_seconds=10)
    cache.set("a", _user(1))
    cache.set("b", _user(2))
    cache.get("a")
    cache.get("zzz")
    cache.record_response_time(4.0)

    cache.clear()

    status = cache.status()
    assert status["size"] == 0
    assert status["hits"] == 1
    assert status["misses"] == 1
    assert status["avg_response_time_ms"] == 4.0
    assert cache.get("a") is None
    assert cache.get("b") is None


def test_set_if_absent_keeps_live_value() -> None:
    cache = TTLCache(ttl_seconds=10)
    cache.set("1", _user(1))

    stored = cache.set_if_absent("1", UserRecord(id=1, name="Stale", email="stale@example.com"))

    assert stored is False
    assert cache.get("1") == _user(1)


def test_set_if_absent_replaces_expired_value_and_skips_counters() -> None:
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("1", _user(1))
    clock.advance(10)

    assert cache.set_if_absent("1", _user(2)) is True
    assert cache.set_if_absent("2", _user(3)) is True

    stats = cache.stats()
    assert stats["hits"] == 0
    assert stats["misses"] == 0
    assert cache.get("1") == _user(2)


def test_average_response_time() -> None:
    cache = TTLCache()

    assert cache.status()["avg_response_time_ms"] == 0.0

    cache.record_response_time(200.0)
    cache.record_response_time(0.5)
    cache.record_response_time(1.0)

    assert cache.status()["avg_response_time_ms"] == pytest.approx(67.17, abs=0.01)


def test_sweep_removes_expired_entries_in_batches() -> None:
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    for idx in range(10):
        cache.set(f"old-{idx}", _user(idx))
    clock.advance(5)
    cache.set("fresh", _user(99))
    clock.advance(6)

    removed = cache.sweep_expired(batch_size=3)

    assert removed == 10
    assert cache.stats()["entries"] == 1
    assert cache.get("fresh") == _user(99)


def test_sweep_with_nothing_expired_is_a_no_op() -> None:
    cache = TTLCache(ttl_seconds=10)
    cache.set("a", _user())

    assert cache.sweep_expired() == 0
    assert cache.stats()["entries"] == 1


def test_thread_safety_under_concurrent_sets() -> None:
    cache = TTLCache(ttl_seconds=30, max_entries=1_000)
    total_keys = 50

    def _writer(idx: int) -> None:
        cache.set(f"k-{idx}", _user(idx))

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(total_keys)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.size() == total_keys
    assert cache.get("k-0") == _user(0)
    assert cache.get("k-25") == _user(25)
    assert cache.get("k-49") == _user(49)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"ttl_seconds": 0},
        {"max_entries": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        TTLCache(**kwargs)
