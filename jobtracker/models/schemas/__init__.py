from .base import ResponseBase
from .trackers import TrackerRead

__all__ = [
    "ResponseBase",
    "TrackerRead",
]
