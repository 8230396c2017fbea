"""Enqueue / perform coordination for trackable jobs.

The host harness calls three extension points for every enqueue attempt:

  1. ``around_enqueue(attempt, submit)`` decides whether ``submit`` runs at all
     (throttling) and runs it at most once.
  2. ``after_enqueue(attempt)`` persists the tracker for the attempt's key and
     returns a ``TrackerRef`` for the harness to keep with the queued job.
  3. ``after_perform(ref)`` removes the tracker once the job has run, whether
     it succeeded or not.

State never lives on the job instance: ``begin()`` creates an ``EnqueueAttempt``
which memoises the key and the lazily resolved tracker, and the ref returned
by step 2 is all step 3 needs.

Superseded debounced jobs are reconciled by cancel-on-supersede: when a reused
tracker pointed at another provider job, that job is cancelled through the
``canceller`` callable (best effort).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable, Optional

from jobtracker.config import CACHE_SETTINGS, TRACKER_SETTINGS
from jobtracker.jobs.base import JobInvocation
from jobtracker.jobs.cache import TTLCache
from jobtracker.jobs.exceptions import StoreConflict
from jobtracker.jobs.keys import derive_key
from jobtracker.jobs.policy import TrackablePolicy
from jobtracker.jobs.tracker_store import TrackerStore, is_persisted
from jobtracker.models.db import Tracker
from jobtracker.utils import get_logger, log_tracker_event
from jobtracker.utils.time import resolve_tz, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class TrackerRef:
    id: int
    key: str
    provider_job_id: Optional[str]


@dataclass(slots=True)
class SubmissionResult:
    submitted: bool
    suppressed: bool = False
    provider_job_id: Optional[str] = None


@dataclass(slots=True)
class EnqueueAttempt:
    invocation: JobInvocation
    key: str
    policy: TrackablePolicy
    _tracker: Optional[Tracker] = field(default=None, repr=False)
    _resolved: bool = field(default=False, repr=False)
    submitted: bool = False


class Coordinator:
    def __init__(
        self,
        store: TrackerStore,
        cache: TTLCache,
        *,
        clock: Callable[[], datetime] = utc_now,
        tz: str | tzinfo | None = None,
        canceller: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.clock = clock
        self.tz = resolve_tz(tz if tz is not None else str(TRACKER_SETTINGS.get("timezone", "UTC")))
        self.canceller = canceller
        self._sentinel = CACHE_SETTINGS.get("sentinel", "1")

    # ----------------------------- attempt state ----------------------------- #
    def begin(self, invocation: JobInvocation) -> EnqueueAttempt:
        key = derive_key(invocation.job_class, invocation.arguments)
        return EnqueueAttempt(invocation=invocation, key=key, policy=invocation.policy)

    def tracker_for(self, attempt: EnqueueAttempt) -> Tracker:
        """Resolve the attempt's tracker once; reuse policies look the key up first."""
        if not attempt._resolved:
            if attempt.policy.reuse_tracker:
                attempt._tracker = self.store.find_or_initialize_by_key(attempt.key)
            else:
                attempt._tracker = self.store.new(attempt.key)
            attempt._resolved = True
        return attempt._tracker  # type: ignore[return-value]

    def throttle_ttl(self, attempt: EnqueueAttempt) -> timedelta:
        return attempt.policy.expires_in(attempt.invocation.scheduled_at, self.clock(), self.tz)

    # ----------------------------- extension points ----------------------------- #
    def around_enqueue(self, attempt: EnqueueAttempt, submit: Callable[[JobInvocation], Optional[str]]) -> SubmissionResult:
        """Run ``submit`` unless a live throttle entry exists for the key."""
        invocation = attempt.invocation
        if not attempt.policy.is_throttled:
            return self._submit(attempt, submit)

        ttl = self.throttle_ttl(attempt)

        if attempt.policy.is_debounced and is_persisted(self.tracker_for(attempt)):
            self.cache.write(attempt.key, self._sentinel, ttl)
            logger.debug("Debounced throttle refreshed", key=attempt.key, ttl_ms=ttl // timedelta(milliseconds=1))
            return self._submit(attempt, submit)

        outcome: list[SubmissionResult] = []

        def compute() -> Any:
            outcome.append(self._submit(attempt, submit))
            return self._sentinel

        _, computed = self.cache.fetch_or_compute(attempt.key, ttl, compute)
        if computed:
            return outcome[0]

        log_tracker_event(
            "suppressed",
            attempt.key,
            {"job": invocation.job_name, "scheduled_at": invocation.scheduled_at},
            correlation_id=invocation.correlation_id,
        )
        return SubmissionResult(submitted=False, suppressed=True)

    def after_enqueue(self, attempt: EnqueueAttempt) -> Optional[TrackerRef]:
        """Persist the tracker for a submitted attempt if it is trackable."""
        invocation = attempt.invocation
        if not self._is_trackable(attempt):
            if invocation.scheduled_at is not None and invocation.provider_job_id is None:
                logger.debug("Submission returned no provider id; not tracking", key=attempt.key)
            return None

        tracker = self.tracker_for(attempt)
        previous_job_id = tracker.provider_job_id if is_persisted(tracker) else None
        tracker.track_job(invocation)
        try:
            self.store.save(tracker)
        except StoreConflict:
            logger.warning("Key already tracked by a concurrent enqueue", key=attempt.key, correlation_id=invocation.correlation_id)
            return None

        log_tracker_event(
            "tracked",
            attempt.key,
            {"provider_job_id": tracker.provider_job_id, "scheduled_at": tracker.scheduled_at},
            correlation_id=invocation.correlation_id,
        )
        if attempt.policy.is_debounced and previous_job_id and previous_job_id != tracker.provider_job_id:
            self._supersede(attempt, previous_job_id)
        return TrackerRef(id=tracker.id, key=tracker.key, provider_job_id=tracker.provider_job_id)

    def after_perform(self, ref: Optional[TrackerRef]) -> None:
        """Drop the tracker materialised for a job; failures are logged, never raised."""
        if ref is None:
            return
        try:
            removed = self.store.delete(ref.id, provider_job_id=ref.provider_job_id)
        except Exception as e:
            logger.error("Tracker cleanup failed", key=ref.key, tracker_id=ref.id, error=str(e), exc_info=True)
            return
        if removed:
            log_tracker_event("released", ref.key, {"provider_job_id": ref.provider_job_id})
        else:
            logger.debug("Tracker already gone or re-pointed", key=ref.key, provider_job_id=ref.provider_job_id)

    def abort(self, attempt: EnqueueAttempt) -> None:
        """Undo the throttle claim of an attempt whose submission was rolled back."""
        if attempt.submitted and attempt.policy.is_throttled:
            self.release_throttle(attempt.key)

    def release_throttle(self, key: str) -> None:
        self.cache.delete(key)
        log_tracker_event("throttle_released", key)

    # ----------------------------- internal helpers ----------------------------- #
    def _submit(self, attempt: EnqueueAttempt, submit: Callable[[JobInvocation], Optional[str]]) -> SubmissionResult:
        invocation = attempt.invocation
        provider_job_id = submit(invocation)
        invocation.provider_job_id = provider_job_id
        attempt.submitted = True
        logger.debug("Job submitted", key=attempt.key, provider_job_id=provider_job_id)
        return SubmissionResult(submitted=True, provider_job_id=provider_job_id)

    def _is_trackable(self, attempt: EnqueueAttempt) -> bool:
        invocation = attempt.invocation
        scheduled = invocation.scheduled_at is not None and invocation.provider_job_id is not None
        if attempt.policy.reuse_tracker:
            return scheduled or is_persisted(self.tracker_for(attempt))
        return scheduled

    def _supersede(self, attempt: EnqueueAttempt, previous_job_id: str) -> None:
        log_tracker_event(
            "superseded",
            attempt.key,
            {"previous_provider_job_id": previous_job_id},
            correlation_id=attempt.invocation.correlation_id,
        )
        if self.canceller is None:
            return
        try:
            self.canceller(previous_job_id)
        except Exception as e:
            logger.warning("Failed to cancel superseded job", key=attempt.key, provider_job_id=previous_job_id, error=str(e))


__all__ = ["Coordinator", "EnqueueAttempt", "SubmissionResult", "TrackerRef"]
