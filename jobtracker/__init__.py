"""Tracking, debouncing and throttling for scheduled jobs.

A ``Coordinator`` sits between job submission and a queue: it decides per
derived job key whether an enqueue attempt runs, keeps one tracker row per key
pointing at the latest scheduled job, and clears it once that job has run.
"""
from jobtracker.jobs.base import JobInvocation, TrackableJob, trackable
from jobtracker.jobs.coordinator import Coordinator, TrackerRef
from jobtracker.jobs.exceptions import CacheUnavailable, PolicyMisconfiguration, StoreConflict, TrackerError
from jobtracker.jobs.policy import DAILY, TrackablePolicy

__all__: list[str] = [
    "TrackableJob",
    "JobInvocation",
    "trackable",
    "TrackablePolicy",
    "DAILY",
    "Coordinator",
    "TrackerRef",
    "TrackerError",
    "PolicyMisconfiguration",
    "StoreConflict",
    "CacheUnavailable",
]
