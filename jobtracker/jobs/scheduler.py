"""Host harness wiring the coordinator around the in-process queue."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from jobtracker.jobs.base import JobInvocation, TrackableJob
from jobtracker.jobs.coordinator import Coordinator, TrackerRef
from jobtracker.jobs.queue import PriorityDelayQueue
from jobtracker.utils import get_logger
from jobtracker.utils.time import as_aware

logger = get_logger(__name__)


@dataclass(slots=True)
class Envelope:
    """What actually sits in the queue: the invocation plus its tracker ref.

    ``ready`` is set once post-enqueue tracking finished, so a worker that
    picks the job up early still sees the final ref.
    """
    invocation: JobInvocation
    tracker_ref: Optional[TrackerRef] = None
    ready: threading.Event = field(default_factory=threading.Event)


@dataclass(slots=True)
class EnqueueOutcome:
    key: str
    submitted: bool
    suppressed: bool = False
    provider_job_id: Optional[str] = None
    tracker_ref: Optional[TrackerRef] = None


class JobScheduler:
    def __init__(self, queue: PriorityDelayQueue, coordinator: Coordinator) -> None:
        self.queue = queue
        self.coordinator = coordinator

    def perform_later(
        self,
        job_cls: type[TrackableJob],
        *arguments: Any,
        wait: Optional[timedelta] = None,
        wait_until: Optional[datetime] = None,
        priority: str = "normal",
    ) -> EnqueueOutcome:
        """Enqueue ``job_cls(*arguments)``; jobs given ``wait``/``wait_until`` are tracked."""
        scheduled_at: Optional[datetime] = None
        if wait_until is not None:
            scheduled_at = as_aware(wait_until, self.coordinator.tz)
        elif wait is not None:
            scheduled_at = self.coordinator.clock() + wait

        invocation = JobInvocation(job_class=job_cls, arguments=tuple(arguments), scheduled_at=scheduled_at, priority=priority)
        attempt = self.coordinator.begin(invocation)
        envelope = Envelope(invocation=invocation)

        def submit(inv: JobInvocation) -> Optional[str]:
            delay = 0.0
            if inv.scheduled_at is not None:
                delay = (inv.scheduled_at - self.coordinator.clock()).total_seconds()
            item = self.queue.enqueue(envelope, priority=inv.priority, delay_seconds=delay)
            return item.provider_job_id

        result = self.coordinator.around_enqueue(attempt, submit)
        if result.suppressed:
            return EnqueueOutcome(key=attempt.key, submitted=False, suppressed=True)

        try:
            envelope.tracker_ref = self.coordinator.after_enqueue(attempt)
        except Exception:
            logger.error("Tracking failed; cancelling submitted job", key=attempt.key, provider_job_id=result.provider_job_id, exc_info=True)
            if result.provider_job_id:
                self.queue.cancel(result.provider_job_id)
            self.coordinator.abort(attempt)
            raise
        finally:
            envelope.ready.set()

        logger.info(
            "Enqueued job",
            job=invocation.job_name,
            key=attempt.key,
            provider_job_id=result.provider_job_id,
            scheduled_at=scheduled_at,
        )
        return EnqueueOutcome(
            key=attempt.key,
            submitted=True,
            provider_job_id=result.provider_job_id,
            tracker_ref=envelope.tracker_ref,
        )

    def cancel(self, provider_job_id: str) -> bool:
        return self.queue.cancel(provider_job_id)

    def cancel_tracked(self, key: str, provider_job_id: Optional[str]) -> bool:
        """Cancel the job a tracker points at and lift the key's throttle window.

        Returns whether a queued job was actually cancelled.
        """
        cancelled = self.cancel(provider_job_id) if provider_job_id else False
        self.coordinator.release_throttle(key)
        return cancelled


__all__ = ["JobScheduler", "Envelope", "EnqueueOutcome"]
