from .trackers import Tracker

__all__ = [
    "Tracker",
]
