"""
Tracker inspection and cancellation endpoints.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Query
import time
from jobtracker.api.deps import get_scheduler, get_store
from jobtracker.jobs.scheduler import JobScheduler
from jobtracker.jobs.tracker_store import TrackerStore
from jobtracker.models.db import Tracker
from jobtracker.models.schemas import ResponseBase, TrackerRead
from jobtracker.utils import get_logger, log_tracker_event, log_performance

router = APIRouter()
logger = get_logger(__name__)

def _find(store: TrackerStore, key: str) -> Tracker:
    tracker = store.get(key)
    if tracker is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No tracker for key '{key}'"
        )
    return tracker

@router.get(
    "/",
    response_model=List[TrackerRead],
    summary="List live trackers"
)
async def list_trackers(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    store: TrackerStore = Depends(get_store)
) -> List[TrackerRead]:
    """List trackers ordered by creation."""
    start_time = time.time()
    trackers = store.list(limit=limit, offset=offset)
    log_performance(
        operation="list_trackers",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"trackers_returned": len(trackers)}
    )
    return [TrackerRead.model_validate(t) for t in trackers]

@router.get(
    "/{key:path}",
    response_model=TrackerRead,
    summary="Get tracker by key"
)
async def get_tracker(key: str, store: TrackerStore = Depends(get_store)) -> TrackerRead:
    return TrackerRead.model_validate(_find(store, key))

@router.delete(
    "/{key:path}",
    response_model=ResponseBase,
    summary="Cancel the tracked job and drop its tracker"
)
async def cancel_tracker(
    key: str,
    store: TrackerStore = Depends(get_store),
    scheduler: JobScheduler = Depends(get_scheduler)
) -> ResponseBase:
    """Cancel the queued job a tracker points at, then delete the tracker.

    The key's throttle window is lifted too, so the job can be enqueued again
    straight away. A job that already started cannot be cancelled; its
    tracker is removed anyway.
    """
    tracker = _find(store, key)
    provider_job_id = tracker.provider_job_id
    cancelled = scheduler.cancel_tracked(key, provider_job_id)
    store.delete_by_key(key)

    log_tracker_event(
        "cancelled",
        key,
        {"provider_job_id": provider_job_id, "queue_cancelled": cancelled}
    )
    return ResponseBase(
        message="Tracker cancelled",
        data={"key": key, "provider_job_id": provider_job_id, "queue_cancelled": cancelled}
    )
