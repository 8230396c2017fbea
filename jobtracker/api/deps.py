"""
Dependencies exposing the job tracking components built at startup.
"""
from typing import Any
from fastapi import HTTPException, Request, status
from jobtracker.jobs.scheduler import JobScheduler
from jobtracker.jobs.tracker_store import TrackerStore
from jobtracker.utils import get_logger

logger = get_logger(__name__)

def _from_state(request: Request, name: str, label: str) -> Any:
    component = getattr(request.app.state, name, None)
    if component is None:
        logger.warning("Component requested before startup", component=name, path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized"
        )
    return component

def get_store(request: Request) -> TrackerStore:
    """Tracker store published on ``app.state`` by the lifespan."""
    return _from_state(request, "tracker_store", "Tracker store")

def get_scheduler(request: Request) -> JobScheduler:
    return _from_state(request, "scheduler", "Job scheduler")
