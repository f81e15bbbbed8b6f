"""
Identity cache tests.

Verifies:
- Hits within the TTL skip the loader; expiry and invalidate() reload
- A load racing an invalidation is not cached
- Missing, inactive and unreachable identities raise distinct errors
"""

from dataclasses import dataclass

import pytest
from sqlalchemy.exc import OperationalError

from clinicstock.errors import (
    IdentityInactive,
    IdentityNotFound,
    IdentityResolutionFailed,
    StoreUnavailable,
)
from clinicstock.services.identity_cache import IdentityCache


@dataclass(frozen=True)
class FakeIdentity:
    id: int
    role: str
    is_active: bool = True


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeStore:
    def __init__(self):
        self.rows = {}
        self.calls = 0
        self.fail_with = None
        self.during_load = None

    def load(self, identity_id):
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        row = self.rows.get(identity_id)
        if self.during_load is not None:
            self.during_load()
        return row


@pytest.fixture
def store():
    store = FakeStore()
    store.rows[1] = FakeIdentity(1, "staff")
    return store


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(store, clock):
    return IdentityCache(store.load, ttl_seconds=60, clock=clock)


class TestResolve:

    def test_hit_within_ttl_skips_store(self, cache, store):
        assert cache.resolve(1).role == "staff"
        assert cache.resolve("1").role == "staff"
        assert store.calls == 1
        assert cache.stats() == {"hits": 1, "misses": 1, "size": 1, "ttl_seconds": 60.0}

    def test_expired_entry_reloads(self, cache, store, clock):
        cache.resolve(1)
        store.rows[1] = FakeIdentity(1, "manager")
        clock.advance(59)
        assert cache.resolve(1).role == "staff"
        clock.advance(1)
        assert cache.resolve(1).role == "manager"
        assert store.calls == 2

    def test_invalidate_forces_reload(self, cache, store):
        cache.resolve(1)
        store.rows[1] = FakeIdentity(1, "admin")
        cache.invalidate(1)
        assert cache.resolve(1).role == "admin"
        assert store.calls == 2

    def test_invalidate_accepts_string_ids(self, cache, store):
        cache.resolve(1)
        cache.invalidate("1")
        assert cache.stats()["size"] == 0

    def test_load_racing_invalidate_is_not_cached(self, cache, store):
        store.during_load = lambda: cache.invalidate(1)
        assert cache.resolve(1).role == "staff"
        store.during_load = None
        cache.resolve(1)
        assert store.calls == 2

    def test_clear_all_discards_in_flight_load(self, cache, store):
        store.during_load = cache.clear_all
        cache.resolve(1)
        store.during_load = None
        assert cache.stats()["size"] == 0


class TestFailures:

    def test_unknown_identity(self, cache):
        with pytest.raises(IdentityNotFound):
            cache.resolve(99)

    @pytest.mark.parametrize("bad_id", [None, "abc", True, 1.5j])
    def test_malformed_id(self, cache, store, bad_id):
        with pytest.raises(IdentityNotFound):
            cache.resolve(bad_id)
        assert store.calls == 0

    def test_inactive_identity(self, cache, store):
        store.rows[2] = FakeIdentity(2, "staff", is_active=False)
        with pytest.raises(IdentityInactive) as exc_info:
            cache.resolve(2)
        assert exc_info.value.status_code == 403

    def test_store_unavailable_is_distinct(self, cache, store):
        store.fail_with = StoreUnavailable("identity:1")
        with pytest.raises(IdentityResolutionFailed) as exc_info:
            cache.resolve(1)
        assert exc_info.value.status_code == 503

    def test_raw_driver_error_is_wrapped(self, cache, store):
        store.fail_with = OperationalError("SELECT 1", {}, Exception("database is locked"))
        with pytest.raises(IdentityResolutionFailed):
            cache.resolve(1)

    def test_failures_are_not_cached(self, cache, store):
        store.fail_with = StoreUnavailable("identity:1")
        with pytest.raises(IdentityResolutionFailed):
            cache.resolve(1)
        store.fail_with = None
        assert cache.resolve(1).role == "staff"
