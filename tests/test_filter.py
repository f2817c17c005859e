"""
Tests for the geo-filter.
"""

from unittest.mock import MagicMock

import pytest

from track_route.core.errors import PersistenceError
from track_route.core.filter import GeoFilter, accept
from track_route.core.models import RecordedPoint, day_bucket
from track_route.store.memory import MemoryPointLog

from conftest import DAY


@pytest.fixture
def local_log():
    return MemoryPointLog()


@pytest.fixture
def remote_log():
    return MemoryPointLog()


@pytest.fixture
def notify():
    return MagicMock()


@pytest.fixture
def geo_filter(local_log, remote_log, notify):
    return GeoFilter(
        local_log=local_log,
        remote_log=remote_log,
        notify=notify,
        accuracy_threshold_m=50.0,
        min_distance_m=30.0,
    )


class TestAcceptDecision:
    """Tests for the pure per-fix decision."""

    def test_inaccurate_fix_rejected(self, make_fix):
        decision = accept(make_fix(accuracy=50.0), None)

        assert decision.accept is False
        assert decision.reason == "accuracy"

    def test_first_fix_accepted_with_zero_distance(self, make_fix):
        decision = accept(make_fix(accuracy=10.0), None)

        assert decision.accept is True
        assert decision.distance == 0.0

    def test_distance_threshold_inclusive(self, make_fix):
        base = RecordedPoint.from_fix("u", make_fix(0.0), 0.0)

        assert accept(make_fix(30.5), base).accept is True
        assert accept(make_fix(29.5), base).accept is False


class TestGeoFilterBatch:
    """Tests for sequential batch processing."""

    def test_inaccurate_fix_has_no_side_effects(self, geo_filter, local_log, remote_log, notify, make_fix):
        result = geo_filter.process_batch("agent-1", [make_fix(accuracy=75.0)])

        assert result.accepted_count == 0
        assert result.decisions[0].accept is False
        assert geo_filter.baseline("agent-1") is None
        assert local_log.last_point("agent-1") is None
        assert remote_log.last_point("agent-1") is None
        notify.assert_not_called()

    def test_first_fix_becomes_baseline(self, geo_filter, make_fix):
        result = geo_filter.process_batch("agent-1", [make_fix(0.0)])

        assert result.accepted_count == 1
        assert result.accepted[0].distance == 0.0
        assert geo_filter.baseline("agent-1") == result.accepted[0]

    def test_fixes_10m_apart(self, geo_filter, make_fix):
        result = geo_filter.process_batch(
            "agent-1",
            [make_fix(0.0, ts=DAY + 1000), make_fix(10.0, ts=DAY + 2000)],
        )

        assert [d.accept for d in result.decisions] == [True, False]
        assert result.decisions[0].distance == 0.0
        assert result.decisions[1].distance == pytest.approx(10.0, abs=0.1)

    def test_fixes_50m_apart(self, geo_filter, make_fix):
        result = geo_filter.process_batch(
            "agent-1",
            [make_fix(0.0, ts=DAY + 1000), make_fix(50.0, ts=DAY + 2000)],
        )

        assert [d.accept for d in result.decisions] == [True, True]
        assert result.accepted[1].distance == pytest.approx(50.0, abs=0.5)

    def test_baseline_advances_within_batch(self, geo_filter, make_fix):
        # 20 m is too close to 0 m; 40 m is measured from 0 m, not from 20 m
        result = geo_filter.process_batch(
            "agent-1",
            [make_fix(0.0, ts=DAY + 1000), make_fix(20.0, ts=DAY + 2000), make_fix(40.0, ts=DAY + 3000),
             make_fix(60.0, ts=DAY + 4000)],
        )

        assert [d.accept for d in result.decisions] == [True, False, True, False]
        assert result.accepted[1].distance == pytest.approx(40.0, abs=0.5)

    def test_baseline_carries_over_between_batches(self, geo_filter, make_fix):
        geo_filter.process_batch("agent-1", [make_fix(0.0, ts=DAY + 1000)])
        result = geo_filter.process_batch("agent-1", [make_fix(15.0, ts=DAY + 2000)])

        assert result.accepted_count == 0

    def test_users_have_independent_baselines(self, geo_filter, make_fix):
        geo_filter.process_batch("agent-1", [make_fix(0.0)])
        result = geo_filter.process_batch("agent-2", [make_fix(5.0)])

        assert result.accepted_count == 1
        assert result.accepted[0].distance == 0.0

    def test_points_written_to_both_logs_in_day_bucket(self, geo_filter, local_log, remote_log, make_fix):
        fix = make_fix(0.0, ts=DAY + 5 * 3_600_000)
        geo_filter.process_batch("agent-1", [fix])

        day = day_bucket(fix.timestamp)
        assert day == DAY
        assert [p.timestamp for p in local_log.points("agent-1", day)] == [fix.timestamp]
        assert [p.timestamp for p in remote_log.points("agent-1", day)] == [fix.timestamp]

    def test_notification_reports_accepted_count(self, geo_filter, notify, make_fix):
        result = geo_filter.process_batch(
            "agent-1",
            [make_fix(0.0, ts=DAY + 1000), make_fix(5.0, ts=DAY + 2000), make_fix(100.0, ts=DAY + 3000)],
        )

        notify.assert_called_once_with("agent-1", 2, result.accepted[-1])


class TestGeoFilterPersistence:
    """Tests for baseline seeding and log failures."""

    def test_baseline_seeded_from_local_log(self, local_log, make_fix):
        local_log.append(RecordedPoint.from_fix("agent-1", make_fix(0.0, ts=DAY + 1000), 0.0))
        geo_filter = GeoFilter(local_log=local_log, accuracy_threshold_m=50.0, min_distance_m=30.0)

        result = geo_filter.process_batch("agent-1", [make_fix(10.0, ts=DAY + 2000)])

        assert result.accepted_count == 0

    def test_remote_failure_does_not_block_local(self, local_log, make_fix):
        remote = MagicMock()
        remote.append.side_effect = PersistenceError("offline")
        geo_filter = GeoFilter(local_log=local_log, remote_log=remote)

        result = geo_filter.process_batch("agent-1", [make_fix(0.0, ts=DAY + 1000)])

        assert result.accepted_count == 1
        assert local_log.last_point("agent-1") is not None
        assert geo_filter.baseline("agent-1") is not None

    def test_notify_failure_is_contained(self, local_log, make_fix):
        notify = MagicMock(side_effect=RuntimeError("push down"))
        geo_filter = GeoFilter(local_log=local_log, notify=notify)

        result = geo_filter.process_batch("agent-1", [make_fix(0.0)])

        assert result.accepted_count == 1
