"""
FastAPI application main module.
Hosts the job tracking stack (tracker store, TTL cache, queue, coordinator, worker)
and exposes tracker inspection endpoints.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import os
from contextlib import asynccontextmanager
from jobtracker.api.v1 import api_router
from jobtracker.utils import setup_logging, get_logger
from jobtracker.database import Base, SessionLocal, engine
from jobtracker.jobs.cache import create_cache
from jobtracker.jobs.coordinator import Coordinator
from jobtracker.jobs.queue import PriorityDelayQueue
from jobtracker.jobs.scheduler import JobScheduler
from jobtracker.jobs.tracker_store import SqlTrackerStore
from jobtracker.jobs.worker import JobWorker
from jobtracker.jobs.base import job_registry
from jobtracker.jobs.exceptions import TrackerError

# Setup logging before creating the app
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE") or None,
    enable_console=True
)

logger = get_logger(__name__)


def build_stack(app: FastAPI) -> JobWorker:
    """Create the tracking components and publish them on ``app.state``."""
    store = SqlTrackerStore(SessionLocal)
    cache = create_cache()
    queue = PriorityDelayQueue()
    coordinator = Coordinator(store, cache, canceller=queue.cancel)
    app.state.tracker_store = store  # type: ignore[attr-defined]
    app.state.cache = cache  # type: ignore[attr-defined]
    app.state.queue = queue  # type: ignore[attr-defined]
    app.state.coordinator = coordinator  # type: ignore[attr-defined]
    app.state.scheduler = JobScheduler(queue, coordinator)  # type: ignore[attr-defined]
    return JobWorker(queue, coordinator)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Application startup initiated")
    worker: JobWorker | None = None
    try:
        Base.metadata.create_all(bind=engine)
        worker = build_stack(app)
        worker.start()
        logger.info("Job queue + worker started")
        yield
    except Exception as e:  # pragma: no cover
        logger.error("Application startup failed", error=str(e), exc_info=True)
        raise
    finally:
        logger.info("Application shutdown initiated")
        if worker:
            worker.stop()
            app.state.queue.shutdown()  # type: ignore[attr-defined]
        logger.info("Application shutdown completed")

app = FastAPI(
    title="Job Tracker",
    description="Tracking, debouncing and throttling of scheduled jobs.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)

@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    logger.error("Tracker error", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": type(exc).__name__, "message": str(exc)},
    )

@app.get("/health", tags=["health"])
async def health(request: Request) -> dict:
    # An empty queue is falsy (it defines __len__), so compare against None.
    queue = getattr(request.app.state, "queue", None)
    cache = getattr(request.app.state, "cache", None)
    store = getattr(request.app.state, "tracker_store", None)
    return {
        "status": "ok",
        "queue": queue.snapshot() if queue is not None else None,
        "trackers": store.count() if store is not None else None,
        "jobs": sorted(job_registry),
        "cache": {
            "backend": cache.backend,
            "healthy": cache.health_check(),
        } if cache is not None else None,
    }

app.include_router(api_router, prefix="/api/v1")
