"""
Tracker-specific exceptions.

Missing provider identifiers are deliberately absent: a job the queue did not
assign an id to is simply not trackable.
"""


class TrackerError(Exception):
    """Base exception for all job tracker errors."""
    pass


class PolicyMisconfiguration(TrackerError, ValueError):
    """
    Raised when a trackable option cannot be interpreted.

    Examples:
    - ``throttled`` is neither a positive duration nor ``"daily"``
    - an unknown option name passed to ``trackable()``
    """

    def __init__(self, message: str, option: str | None = None):
        self.option = option
        super().__init__(message)


class StoreConflict(TrackerError):
    """Raised when persisting a tracker violates the unique key constraint."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Tracker already exists for key: {key}")


class CacheUnavailable(TrackerError):
    """Raised when the TTL cache backend cannot be reached."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)
