"""
API v1 router initialization and setup.
"""
from fastapi import APIRouter
from .endpoints import trackers

api_router = APIRouter()

api_router.include_router(
    trackers.router,
    prefix="/trackers",
    tags=["trackers"]
)
