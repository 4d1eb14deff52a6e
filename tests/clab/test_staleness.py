"""Tests for clab.staleness."""

from datetime import UTC, datetime, timedelta

from clab.keys import Level
from clab.notes import NoteRecord
from clab.staleness import DEFAULT_MAX_AGE, StalenessPolicy, from_millis, is_fresh, to_millis, utc_now


CREATED = datetime(2025, 1, 1, tzinfo=UTC)


def record_at(created_at):
    return NoteRecord.create("architect", "a.py", Level.FILE, {"summary": "x"}, created_at=created_at)


class TestIsFresh:
    """Freshness boundary tests."""

    def test_just_inside_window_is_fresh(self):
        now = CREATED + DEFAULT_MAX_AGE - timedelta(milliseconds=1)
        assert is_fresh(record_at(CREATED), now)

    def test_exactly_at_window_is_stale(self):
        assert not is_fresh(record_at(CREATED), CREATED + DEFAULT_MAX_AGE)

    def test_just_past_window_is_stale(self):
        now = CREATED + DEFAULT_MAX_AGE + timedelta(milliseconds=1)
        assert not is_fresh(record_at(CREATED), now)

    def test_custom_max_age(self):
        assert not is_fresh(record_at(CREATED), CREATED + timedelta(minutes=5), timedelta(minutes=5))


class TestStalenessPolicy:
    """Tests for StalenessPolicy."""

    def test_uses_injected_clock(self):
        policy = StalenessPolicy.from_hours(1, clock=lambda: CREATED + timedelta(minutes=30))
        assert policy.is_fresh(record_at(CREATED))

        policy = StalenessPolicy.from_hours(1, clock=lambda: CREATED + timedelta(hours=2))
        assert not policy.is_fresh(record_at(CREATED))

    def test_explicit_now_overrides_clock(self):
        policy = StalenessPolicy.from_hours(1, clock=lambda: CREATED + timedelta(hours=5))
        assert policy.is_fresh(record_at(CREATED), now=CREATED)

    def test_zero_age_never_fresh(self):
        policy = StalenessPolicy.from_hours(0, clock=lambda: CREATED)
        assert not policy.is_fresh(record_at(CREATED))


class TestMillis:
    """Tests for millisecond conversion."""

    def test_round_trip_is_exact(self):
        moment = datetime(2025, 6, 1, 8, 30, 15, 250000, tzinfo=UTC)
        assert from_millis(to_millis(moment)) == moment

    def test_utc_now_has_millisecond_precision(self):
        now = utc_now()
        assert now.microsecond % 1000 == 0
        assert now.tzinfo is not None
