"""Unit tests for auth/session_store.py -- memory and SQL session backends.

Both backends are run through the same cases with an injectable clock, so
absolute and idle expiry are checked without sleeping.
"""

import pytest

from auth.models import Session
from auth.session_store import MemorySessionStore, SqlSessionStore


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture(params=["memory", "sql"])
def clock_and_store(request):
    clock = FakeClock()
    if request.param == "memory":
        store = MemorySessionStore(absolute_ttl=100, idle_ttl=30, clock=clock)
    else:
        store = SqlSessionStore("sqlite:///:memory:", absolute_ttl=100, idle_ttl=30, clock=clock)
    yield clock, store
    store.close()


def _session(clock: FakeClock, sid: str = "sid-1", user_id: int = 1) -> Session:
    return Session(session_id=sid, user_id=user_id, created_at=clock.now, last_seen=clock.now)


class TestSessionStore:
    def test_put_then_get(self, clock_and_store):
        clock, store = clock_and_store
        store.put(_session(clock))
        got = store.get("sid-1")
        assert got is not None
        assert got.user_id == 1
        assert got.second_factor_satisfied is False

    def test_unknown_id(self, clock_and_store):
        _, store = clock_and_store
        assert store.get("missing") is None

    def test_put_replaces(self, clock_and_store):
        clock, store = clock_and_store
        session = _session(clock)
        store.put(session)
        session.second_factor_satisfied = True
        store.put(session)
        assert store.get("sid-1").second_factor_satisfied is True

    def test_mark_second_factor_updates_existing(self, clock_and_store):
        clock, store = clock_and_store
        store.put(_session(clock))
        assert store.mark_second_factor("sid-1") is True
        assert store.get("sid-1").second_factor_satisfied is True

    def test_mark_second_factor_never_creates(self, clock_and_store):
        clock, store = clock_and_store
        store.put(_session(clock))
        store.delete("sid-1")
        assert store.mark_second_factor("sid-1") is False
        assert store.get("sid-1") is None

    def test_delete_is_idempotent(self, clock_and_store):
        clock, store = clock_and_store
        store.put(_session(clock))
        store.delete("sid-1")
        store.delete("sid-1")
        assert store.get("sid-1") is None

    def test_idle_expiry(self, clock_and_store):
        clock, store = clock_and_store
        store.put(_session(clock))
        clock.now += 31
        assert store.get("sid-1") is None

    def test_activity_refreshes_idle_timer(self, clock_and_store):
        clock, store = clock_and_store
        store.put(_session(clock))
        for _ in range(4):
            clock.now += 20
            assert store.get("sid-1") is not None

    def test_absolute_expiry_despite_activity(self, clock_and_store):
        clock, store = clock_and_store
        store.put(_session(clock))
        for _ in range(5):
            clock.now += 20
            store.get("sid-1")
        clock.now += 20  # 120s after login
        assert store.get("sid-1") is None

    def test_purge_expired(self, clock_and_store):
        clock, store = clock_and_store
        store.put(_session(clock, "old"))
        clock.now += 25
        store.put(_session(clock, "new"))
        clock.now += 10  # "old" idle 35s, "new" idle 10s
        assert store.purge_expired() == 1
        assert store.get("new") is not None
        assert store.get("old") is None


class TestMemorySessionStore:
    def test_get_returns_copy(self):
        clock = FakeClock()
        store = MemorySessionStore(absolute_ttl=100, idle_ttl=30, clock=clock)
        store.put(_session(clock))
        got = store.get("sid-1")
        got.second_factor_satisfied = True
        assert store.get("sid-1").second_factor_satisfied is False

    def test_len(self):
        clock = FakeClock()
        store = MemorySessionStore(absolute_ttl=100, idle_ttl=30, clock=clock)
        store.put(_session(clock, "a"))
        store.put(_session(clock, "b"))
        assert len(store) == 2
