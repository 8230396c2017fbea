from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from jobtracker import DAILY, PolicyMisconfiguration, TrackablePolicy
from sample_jobs import DailyThrottledJob, MisconfiguredJob, SampleJob, ThrottledDebouncedJob, ThrottledJob

UTC = timezone.utc


def test_defaults():
    policy = TrackablePolicy()
    assert policy.debounced is False
    assert policy.throttled is None
    assert not policy.reuse_tracker


def test_merge_is_last_write_wins_and_returns_new_value():
    base = TrackablePolicy()
    merged = base.merge(debounced=True).merge(throttled=60).merge(throttled=DAILY)
    assert merged == TrackablePolicy(debounced=True, throttled=DAILY)
    assert base == TrackablePolicy()


def test_merge_rejects_unknown_options():
    with pytest.raises(PolicyMisconfiguration) as exc:
        TrackablePolicy().merge(throttle=60)
    assert exc.value.option == "throttle"


def test_subclass_configuration_does_not_leak_to_parent():
    assert SampleJob.trackable_policy == TrackablePolicy()
    assert ThrottledJob.trackable_policy.throttled == timedelta(days=1)
    assert ThrottledDebouncedJob.trackable_policy.reuse_tracker
    assert DailyThrottledJob.trackable_policy.is_daily


def test_duration_expiry_covers_delay_until_scheduled_time():
    policy = TrackablePolicy(throttled=timedelta(days=1))
    now = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)
    scheduled = now + timedelta(hours=3)
    assert policy.expires_in(scheduled, now, UTC) == timedelta(days=1, hours=3)


def test_numeric_seconds_are_accepted():
    policy = TrackablePolicy(throttled=90)
    now = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)
    assert policy.expires_in(None, now, UTC) == timedelta(seconds=90)


def test_daily_expiry_runs_to_end_of_local_day():
    policy = TrackablePolicy(throttled=DAILY)
    tz = ZoneInfo("America/New_York")
    now = datetime(2024, 1, 1, 8, 0, tzinfo=tz)
    ttl = policy.expires_in(datetime(2024, 1, 1, 10, 0), now, tz)
    assert ttl == timedelta(hours=15, minutes=59, seconds=59, milliseconds=999)


def test_daily_expiry_with_utc_clock_and_local_zone():
    policy = TrackablePolicy(throttled=DAILY)
    tz = ZoneInfo("America/New_York")
    now = datetime(2024, 1, 1, 13, 0, tzinfo=UTC)  # 08:00 in New York
    ttl = policy.expires_in(datetime(2024, 1, 1, 10, 0, tzinfo=tz), now, tz)
    assert ttl == timedelta(hours=15, minutes=59, seconds=59, milliseconds=999)


def test_daily_expiry_without_schedule_uses_today():
    policy = TrackablePolicy(throttled=DAILY)
    now = datetime(2024, 1, 1, 23, 0, tzinfo=UTC)
    assert policy.expires_in(None, now, UTC) == timedelta(minutes=59, seconds=59, milliseconds=999)


@pytest.mark.parametrize("value", [0, -5, timedelta(0), "weekly", True, [1]])
def test_bad_throttle_values_fail_at_expiry_time(value):
    policy = TrackablePolicy(throttled=value)
    with pytest.raises(PolicyMisconfiguration):
        policy.expires_in(None, datetime(2024, 1, 1, tzinfo=UTC), UTC)


def test_misconfiguration_is_not_raised_at_registration():
    assert MisconfiguredJob.trackable_policy.throttled == -5
