"""Background worker executing queued trackable jobs."""
from __future__ import annotations

import threading
import time
from typing import Optional

from jobtracker.config import WORKER_SETTINGS
from jobtracker.jobs.coordinator import Coordinator
from jobtracker.jobs.queue import PriorityDelayQueue
from jobtracker.jobs.scheduler import Envelope
from jobtracker.utils import get_logger, log_performance

logger = get_logger(__name__)

# Debug instrumentation store (test visibility)
LAST_EXCEPTIONS: list[dict] = []

# Upper bound on waiting for post-enqueue tracking of a job that ran immediately.
TRACKING_WAIT_SECONDS = 5.0


class JobWorker:
    def __init__(self, queue: PriorityDelayQueue, coordinator: Coordinator, *, poll_timeout: Optional[float] = None):
        self.queue = queue
        self.coordinator = coordinator
        self.poll_timeout = poll_timeout if poll_timeout is not None else float(WORKER_SETTINGS.get("poll_timeout", 5.0))
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():  # pragma: no cover
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="jobtracker-worker", daemon=True)
        self._thread.start()
        logger.info("Job worker started")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        logger.info("Job worker stop requested")
        if timeout is not None and self._thread:
            self._thread.join(timeout)

    def run_pending(self) -> int:
        """Process every job that is ready right now on the calling thread."""
        processed = 0
        while True:
            envelope = self.queue.dequeue(block=False)
            if envelope is None:
                return processed
            self.process(envelope)
            processed += 1

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                envelope = self.queue.dequeue(timeout=self.poll_timeout)
                if envelope is None:
                    continue
                if not isinstance(envelope, Envelope):
                    logger.warning("Skipping unknown queue payload", payload_type=type(envelope).__name__)
                    continue
                self.process(envelope)
            except Exception as e:  # pragma: no cover
                logger.error("Worker loop error", error=str(e), exc_info=True)
                time.sleep(1)

    def process(self, envelope: Envelope) -> None:
        invocation = envelope.invocation
        logger.info("Performing job", job=invocation.job_name, provider_job_id=invocation.provider_job_id)
        start_time = time.time()
        try:
            invocation.job_class().perform(*invocation.arguments)
            logger.info("Job completed", job=invocation.job_name, provider_job_id=invocation.provider_job_id)
        except Exception as e:
            logger.error("Job failed", job=invocation.job_name, provider_job_id=invocation.provider_job_id, error=str(e), exc_info=True)
            LAST_EXCEPTIONS.append({
                "job": invocation.job_name,
                "provider_job_id": invocation.provider_job_id,
                "error": str(e),
                "type": type(e).__name__,
            })
        finally:
            envelope.ready.wait(TRACKING_WAIT_SECONDS)
            self.coordinator.after_perform(envelope.tracker_ref)
            log_performance(
                operation="perform_job",
                duration_ms=(time.time() - start_time) * 1000,
                additional_data={"job": invocation.job_name},
            )


__all__ = ["JobWorker", "LAST_EXCEPTIONS"]
