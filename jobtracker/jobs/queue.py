"""In-memory priority + delay queue (single-process host scheduler).

Features:
- Priority ordering (lower numeric priority value = higher priority).
- Optional delay (scheduled execution time) per job.
- Provider job id (uuid4) assigned to every enqueued item.
- Cancellation by provider job id.
- Capacity limits / backpressure via QUEUE_SETTINGS.
- Thread-safe with condition variable.

Two-heaps strategy:
 1. ready_heap: (priority, seq, item)
 2. scheduled_heap: (ready_at_ts, priority, seq, item)

On enqueue:
  - If ready_at <= now -> push to ready_heap else scheduled_heap.
On dequeue:
  - Promote any scheduled items whose ready_at <= now.
  - Pop highest priority from ready_heap (ties resolved by seq FIFO), skipping cancelled items.
  - If nothing ready: wait until next scheduled item's ready_at or until notified.
On cancel:
  - The item is flagged and dropped lazily when it reaches the top of a heap.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
import threading
import time
import heapq
import uuid

from jobtracker.config import QUEUE_SETTINGS
from jobtracker.utils import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class QueueItem:
    job: Any
    provider_job_id: str
    priority_label: str
    priority_value: int
    enqueued_at: float
    ready_at: float
    seq: int
    cancelled: bool = False


class PriorityDelayQueue:
    def __init__(self) -> None:
        priorities_cfg = QUEUE_SETTINGS.get("priorities", {})  # type: ignore[assignment]
        self._priority_map: dict[str, int] = priorities_cfg if isinstance(priorities_cfg, dict) else {"normal": 5}
        self._warn_depth = int(QUEUE_SETTINGS.get("warn_depth", 1000))  # type: ignore[arg-type]
        self._max_in_memory = int(QUEUE_SETTINGS.get("max_in_memory", 5000))  # type: ignore[arg-type]
        self._lock = threading.RLock()
        self._cv = threading.Condition(self._lock)
        self._ready_heap: list[tuple[int, int, QueueItem]] = []  # (priority_value, seq, item)
        self._scheduled_heap: list[tuple[float, int, int, QueueItem]] = []  # (ready_at_ts, priority_value, seq, item)
        self._items: dict[str, QueueItem] = {}  # provider_job_id -> live item
        self._seq_counter = 0
        self._shutdown = False

    # ----------------------------- internal helpers ----------------------------- #
    def _next_seq(self) -> int:
        self._seq_counter += 1
        return self._seq_counter

    def _promote_scheduled(self) -> None:
        now_ts = time.time()
        while self._scheduled_heap and self._scheduled_heap[0][0] <= now_ts:
            _, priority_value, seq, item = heapq.heappop(self._scheduled_heap)
            if item.cancelled:
                continue
            heapq.heappush(self._ready_heap, (priority_value, seq, item))

    def _await_next_ready(self, timeout: Optional[float]) -> None:
        if self._ready_heap:
            return
        if not self._scheduled_heap:
            self._cv.wait(timeout=timeout)
            return
        wait_time = max(0.0, self._scheduled_heap[0][0] - time.time())
        if timeout is not None:
            wait_time = min(wait_time, timeout)
        if wait_time > 0:
            self._cv.wait(timeout=wait_time)

    # ----------------------------- public API ----------------------------- #
    def enqueue(self, job: Any, *, priority: str = "normal", delay_seconds: float = 0.0) -> QueueItem:
        with self._lock:
            if self._shutdown:
                raise RuntimeError("Queue shutdown")
            if len(self) >= self._max_in_memory:
                raise OverflowError("Queue capacity exceeded")
            if priority not in self._priority_map:
                raise ValueError(f"Unknown priority '{priority}'")
            now_ts = time.time()
            ready_at_ts = now_ts + max(0.0, delay_seconds)
            item = QueueItem(
                job=job,
                provider_job_id=str(uuid.uuid4()),
                priority_label=priority,
                priority_value=self._priority_map[priority],
                enqueued_at=now_ts,
                ready_at=ready_at_ts,
                seq=self._next_seq(),
            )
            if ready_at_ts <= now_ts:
                heapq.heappush(self._ready_heap, (item.priority_value, item.seq, item))
            else:
                heapq.heappush(self._scheduled_heap, (ready_at_ts, item.priority_value, item.seq, item))
            self._items[item.provider_job_id] = item
            if self.depth() >= self._warn_depth:
                logger.warning("Queue depth warning", depth=self.depth())
            self._cv.notify()
            return item

    def dequeue(self, *, block: bool = True, timeout: Optional[float] = None) -> Any:
        """Pop next ready job. Returns None if non-blocking and empty or timeout occurs."""
        end_time = None if timeout is None else time.time() + timeout
        with self._lock:
            while True:
                if self._shutdown and not self._items:
                    return None
                self._promote_scheduled()
                while self._ready_heap:
                    _, _, item = heapq.heappop(self._ready_heap)
                    if item.cancelled:
                        continue
                    self._items.pop(item.provider_job_id, None)
                    return item.job
                if not block:
                    return None
                remaining = None if end_time is None else max(0.0, end_time - time.time())
                if end_time is not None and remaining == 0:
                    return None
                self._await_next_ready(remaining)

    def cancel(self, provider_job_id: str) -> bool:
        """Cancel a queued job. Returns False if it already ran or never existed."""
        with self._lock:
            item = self._items.pop(provider_job_id, None)
            if item is None:
                return False
            item.cancelled = True
            logger.info("Queued job cancelled", provider_job_id=provider_job_id)
            return True

    def get(self, provider_job_id: str) -> Optional[QueueItem]:
        with self._lock:
            return self._items.get(provider_job_id)

    def shutdown(self) -> None:
        with self._lock:
            self._shutdown = True
            self._cv.notify_all()

    # ----------------------------- test utilities ----------------------------- #
    def purge(self) -> None:
        """Remove all queued (ready + scheduled) jobs.

        Intended for test isolation only; not used in production runtime.
        """
        with self._lock:
            self._ready_heap.clear()
            self._scheduled_heap.clear()
            self._items.clear()
            self._cv.notify_all()

    # ----------------------------- inspection ----------------------------- #
    def depth(self) -> int:
        return len(self._items)

    def __len__(self) -> int:  # pragma: no cover
        return self.depth()

    def snapshot(self) -> dict:
        with self._lock:
            ready = sum(1 for _, _, item in self._ready_heap if not item.cancelled)
            return {
                "depth": self.depth(),
                "ready": ready,
                "scheduled": self.depth() - ready,
                "shutdown": self._shutdown,
            }


__all__ = ["PriorityDelayQueue", "QueueItem"]
