"""
Tests for the point log, route cache and quota stores.
"""

import json
import threading
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from track_route.cache import keys
from track_route.core.errors import PersistenceError
from track_route.store.memory import MemoryPointLog, MemoryQuotaStore, MemoryRouteCache
from track_route.store.redis_quota import RedisQuotaStore
from track_route.store.supabase_store import SupabasePointLog, SupabaseRouteCache
from track_route import worker

from conftest import DAY


@pytest.fixture
def supabase_query():
    """Chainable stand-in for a supabase table query builder."""
    query = MagicMock()
    for method in ("select", "eq", "order", "limit", "upsert"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=[])
    sb = MagicMock()
    sb.table.return_value = query
    return sb, query


class TestMemoryPointLog:
    """Tests for the in-process point log."""

    def test_points_sorted_by_time(self, make_points):
        log = MemoryPointLog()
        pts = make_points([0.0, 100.0, 200.0])
        for p in reversed(pts):
            log.append(p)

        assert log.points("agent-1", DAY) == pts

    def test_keys_partition_by_user_and_day(self, make_points):
        log = MemoryPointLog()
        for p in make_points([0.0], user_id="a") + make_points([0.0], user_id="b", day=DAY + 86_400_000):
            log.append(p)

        assert len(log.points("a", DAY)) == 1
        assert log.points("a", DAY + 86_400_000) == []
        assert len(log.points("b", DAY + 86_400_000)) == 1

    def test_last_point_across_days(self, make_points):
        log = MemoryPointLog()
        later = make_points([0.0], day=DAY + 86_400_000)[0]
        log.append(later)
        log.append(make_points([0.0])[0])

        assert log.last_point("agent-1") == later


class TestMemoryRouteCache:
    """Tests for the in-process route cache."""

    def test_documents_are_copied(self):
        cache = MemoryRouteCache()
        doc = {"status": "OK", "routes": []}
        cache.put("a", DAY, doc)
        doc["status"] = "CHANGED"

        assert cache.get("a", DAY)["status"] == "OK"

    def test_missing(self):
        assert MemoryRouteCache().get("a", DAY) is None


class TestMemoryQuotaStore:
    """Tests for the in-process counter."""

    def test_acquire_until_past_limit(self):
        store = MemoryQuotaStore()

        granted = [store.try_acquire(2) for _ in range(5)]

        assert granted == [True, True, True, False, False]
        assert store.count() == 3
        assert store.exhausted(2) is True

    def test_unlimited(self):
        store = MemoryQuotaStore(count=99, unlimited=True)

        assert store.try_acquire(20) is True
        assert store.exhausted(20) is False

    def test_concurrent_acquire_is_atomic(self):
        store = MemoryQuotaStore()
        granted = []
        lock = threading.Lock()

        def worker_fn():
            for _ in range(50):
                ok = store.try_acquire(20)
                with lock:
                    granted.append(ok)

        threads = [threading.Thread(target=worker_fn) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(granted) == 21
        assert store.count() == 21

    def test_reset_once_per_day(self):
        store = MemoryQuotaStore(count=7)

        assert store.reset_if_new_day(DAY) is True
        store.try_acquire(20)
        assert store.reset_if_new_day(DAY) is False
        assert store.count() == 1


class TestRedisQuotaStore:
    """Tests for the Redis-backed counter."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.register_script.return_value = MagicMock(return_value=4)
        return client

    def test_acquire_granted(self, client):
        store = RedisQuotaStore(client, device_id="tablet-7")

        assert store.try_acquire(20) is True
        client.register_script.return_value.assert_called_once_with(
            keys=[keys.quota_counter("tablet-7"), keys.quota_unlimited("tablet-7")], args=[20]
        )

    def test_acquire_denied(self, client):
        client.register_script.return_value.return_value = -1
        store = RedisQuotaStore(client)

        assert store.try_acquire(20) is False

    def test_count(self, client):
        client.get.return_value = "12"

        assert RedisQuotaStore(client).count() == 12

    def test_count_missing_key(self, client):
        client.get.return_value = None

        assert RedisQuotaStore(client).count() == 0

    def test_unlimited_flag(self, client):
        client.get.return_value = "1"

        assert RedisQuotaStore(client).is_unlimited() is True

    def test_errors_become_persistence_errors(self, client):
        client.get.side_effect = RedisConnectionError("down")

        with pytest.raises(PersistenceError):
            RedisQuotaStore(client).count()

    def test_reset_if_new_day(self, client):
        client.getset.return_value = str(DAY - 86_400_000)
        store = RedisQuotaStore(client, device_id="tablet-7")

        assert store.reset_if_new_day(DAY) is True
        client.set.assert_called_with(keys.quota_counter("tablet-7"), 0)

    def test_same_day_no_reset(self, client):
        client.getset.return_value = str(DAY)

        assert RedisQuotaStore(client).reset_if_new_day(DAY) is False
        client.set.assert_not_called()


class TestSupabaseStores:
    """Tests for the Supabase point log and route cache."""

    def test_append_upserts_row(self, supabase_query, make_points):
        sb, query = supabase_query
        point = make_points([0.0])[0]

        SupabasePointLog(sb, table="pts").append(point)

        sb.table.assert_called_with("pts")
        row = query.upsert.call_args.args[0]
        assert row["user_id"] == "agent-1"
        assert row["day"] == DAY
        assert row["time"] == point.timestamp

    def test_points_query_ordered(self, supabase_query, make_points):
        sb, query = supabase_query
        point = make_points([0.0])[0]
        query.execute.return_value = MagicMock(data=[{
            "user_id": "agent-1", "day": DAY, "time": point.timestamp,
            "latitude": point.latitude, "longitude": point.longitude,
            "distance": 0.0, "speed": None, "bearing": None, "altitude": None, "accuracy": 4.0,
        }])

        points = SupabasePointLog(sb).points("agent-1", DAY)

        query.order.assert_called_with("time")
        assert [p.timestamp for p in points] == [point.timestamp]
        assert points[0].speed == 0.0

    def test_read_failure(self, supabase_query):
        sb, query = supabase_query
        query.execute.side_effect = RuntimeError("503")

        with pytest.raises(PersistenceError):
            SupabasePointLog(sb).points("agent-1", DAY)

    def test_route_cache_round_trip(self, supabase_query):
        sb, query = supabase_query
        doc = {"status": "OK", "routes": [{"legs": []}]}
        cache = SupabaseRouteCache(sb)

        cache.put("agent-1", DAY, doc)
        row = query.upsert.call_args.args[0]
        query.execute.return_value = MagicMock(data=[{"encoded": row["encoded"]}])

        assert json.loads(row["encoded"]) == doc
        assert cache.get("agent-1", DAY) == doc

    def test_route_cache_miss(self, supabase_query):
        sb, _ = supabase_query

        assert SupabaseRouteCache(sb).get("agent-1", DAY) is None


class TestWorker:
    """Tests for the daily maintenance cycle."""

    def test_resets_on_new_day(self):
        store = MemoryQuotaStore(count=25)

        assert worker.run_cycle(store, now_ms=DAY + 1000) is True
        assert store.count() == 0
        assert worker.run_cycle(store, now_ms=DAY + 2000) is False

    def test_failure_is_logged_not_raised(self):
        store = MagicMock()
        store.reset_if_new_day.side_effect = PersistenceError("down")

        assert worker.run_cycle(store, now_ms=DAY) is False
