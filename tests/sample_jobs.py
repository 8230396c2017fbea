"""Job classes shared by the test suite."""
from datetime import timedelta

from jobtracker import DAILY, TrackableJob, trackable

PERFORMED: list[tuple[str, tuple]] = []


class SampleJob(TrackableJob):
    def perform(self, *arguments):
        PERFORMED.append((type(self).__name__, arguments))


class FailingJob(TrackableJob):
    def perform(self, *arguments):
        raise RuntimeError("boom")


@trackable(throttled=timedelta(days=1))
class ThrottledJob(SampleJob):
    pass


@trackable(throttled=DAILY)
class DailyThrottledJob(SampleJob):
    pass


@trackable(debounced=True)
class DebouncedJob(SampleJob):
    @classmethod
    def key(cls, foo, _extra):
        return f"foo-{foo}"


@trackable(debounced=True, throttled=timedelta(days=1))
class ThrottledDebouncedJob(SampleJob):
    @classmethod
    def key(cls, foo, _extra):
        return f"foo-{foo}"


@trackable(throttled=-5)
class MisconfiguredJob(SampleJob):
    pass
