"""
Utilities package initialization.
"""
from .logger import get_logger, log_tracker_event, log_performance, setup_logging
from .time import utc_now, end_of_day

__all__ = ["get_logger", "log_tracker_event", "log_performance", "setup_logging", "utc_now", "end_of_day"]
