"""Trackable job base class and enqueue payload.

Example:

    class SampleJob(TrackableJob):
        def perform(self, one, two, three): ...

    # tracker key = sample_job/foo/bar/1
    scheduler.perform_later(SampleJob, "foo", "bar", 1, wait=timedelta(days=1))

    @trackable(debounced=True, throttled=timedelta(days=1))
    class CustomKeyJob(TrackableJob):
        def perform(self, foo, extra): ...

        @classmethod
        def key(cls, foo, _extra):
            return f"foo-{foo}"
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from jobtracker.jobs.keys import default_key
from jobtracker.jobs.policy import DEFAULT_POLICY, TrackablePolicy

J = TypeVar("J", bound=type["TrackableJob"])

job_registry: dict[str, type["TrackableJob"]] = {}


class TrackableJob:
    trackable_policy: TrackablePolicy = DEFAULT_POLICY

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        job_registry[cls.__name__] = cls

    @classmethod
    def trackable(cls, **options: Any) -> type["TrackableJob"]:
        """Configure tracker behaviour for this class (see ``jobtracker.jobs.policy``)."""
        cls.trackable_policy = cls.trackable_policy.merge(**options)
        return cls

    @classmethod
    def key(cls, *arguments: Any) -> str:
        return default_key(cls.__name__, arguments)

    def perform(self, *arguments: Any) -> Any:
        raise NotImplementedError


def trackable(**options: Any) -> Callable[[J], J]:
    """Class decorator form of ``TrackableJob.trackable``."""
    def decorate(job_cls: J) -> J:
        job_cls.trackable(**options)
        return job_cls
    return decorate


@dataclass(slots=True)
class JobInvocation:
    job_class: type[TrackableJob]
    arguments: tuple[Any, ...] = ()
    scheduled_at: datetime | None = None
    priority: str = "normal"
    provider_job_id: Optional[str] = None
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def job_name(self) -> str:
        return self.job_class.__name__

    @property
    def policy(self) -> TrackablePolicy:
        return self.job_class.trackable_policy


__all__ = ["TrackableJob", "JobInvocation", "trackable", "job_registry"]
