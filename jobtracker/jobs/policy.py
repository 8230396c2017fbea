"""Trackable policy: per job class debounce / throttle configuration.

A policy is an immutable value attached to a job class when the class is
defined. ``trackable(...)`` produces a new policy instead of mutating the one
shared with parent classes.

Supported options:

  - debounced: bool (default: False)
  - throttled: timedelta, positive seconds, or "daily" (default: None)

``throttled`` is validated lazily, when the cache expiry is computed for an
enqueue attempt, so a bad value fails that attempt rather than the import.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, tzinfo
from typing import Any, Union

from jobtracker.jobs.exceptions import PolicyMisconfiguration
from jobtracker.utils.time import as_aware, end_of_day

DAILY = "daily"
OPTIONS = frozenset({"debounced", "throttled"})

Throttle = Union[timedelta, int, float, str]


@dataclass(frozen=True, slots=True)
class TrackablePolicy:
    debounced: bool = False
    throttled: Throttle | None = None

    def merge(self, **options: Any) -> TrackablePolicy:
        """Return a copy with ``options`` applied (last write wins per option)."""
        unknown = sorted(set(options) - OPTIONS)
        if unknown:
            raise PolicyMisconfiguration(
                f"Unknown trackable option(s): {', '.join(unknown)}", option=unknown[0]
            )
        return replace(self, **options)

    @property
    def is_throttled(self) -> bool:
        return self.throttled is not None and self.throttled is not False

    @property
    def is_debounced(self) -> bool:
        return bool(self.debounced)

    @property
    def reuse_tracker(self) -> bool:
        return self.is_debounced or self.is_throttled

    @property
    def is_daily(self) -> bool:
        return self.throttled == DAILY

    def throttle_window(self) -> timedelta:
        value = self.throttled
        if isinstance(value, timedelta):
            window = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            window = timedelta(seconds=value)
        else:
            raise PolicyMisconfiguration(
                f"throttled must be a positive duration or {DAILY!r}, got {value!r}",
                option="throttled",
            )
        if window <= timedelta(0):
            raise PolicyMisconfiguration(
                f"throttled duration must be positive, got {value!r}", option="throttled"
            )
        return window

    def expires_in(self, scheduled_at: datetime | None, now: datetime, tz: tzinfo) -> timedelta:
        """How long the throttle cache entry must live for an attempt.

        Naive datetimes are read as local to ``tz``. Unscheduled attempts use
        ``now`` in place of ``scheduled_at``.
        """
        now = as_aware(now, tz)
        scheduled = as_aware(scheduled_at, tz) if scheduled_at is not None else None
        if self.is_daily:
            return end_of_day(scheduled or now, tz) - now
        window = self.throttle_window()
        delay = scheduled - now if scheduled is not None else timedelta(0)
        return window + delay


DEFAULT_POLICY = TrackablePolicy()

__all__ = ["TrackablePolicy", "DEFAULT_POLICY", "DAILY", "OPTIONS"]
