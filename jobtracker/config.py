"""Core configuration for the job tracker.

Tunables for throttling, the TTL cache, the in-process queue and the worker are
centralized here as module-level dicts. Real deployments override them through
environment variables; tests monkeypatch the dict values directly.
"""
from __future__ import annotations

import os

# ------------------------------- Tracking --------------------------------- #
TRACKER_SETTINGS: dict[str, str | int] = {
	# Zone used to resolve "end of day" for daily throttling.
	"timezone": os.getenv("TRACKER_TIMEZONE", "UTC"),
	# Cache entries shorter than this are clamped up (Redis PX must be > 0).
	"min_ttl_ms": int(os.getenv("TRACKER_MIN_TTL_MS", "1")),
}

# -------------------------------- TTL cache ------------------------------- #
CACHE_SETTINGS: dict[str, str | float] = {
	"backend": os.getenv("TRACKER_CACHE_BACKEND", "memory"),  # "redis" or "memory"
	"redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
	"key_prefix": os.getenv("TRACKER_CACHE_PREFIX", "jobtracker:throttle:"),
	"socket_timeout": float(os.getenv("REDIS_SOCKET_TIMEOUT", "2.0")),
	# Stored instead of serializing the job.
	"sentinel": "1",
}

# --------------------------------- Queue ---------------------------------- #
QUEUE_SETTINGS: dict[str, dict[str, int] | int] = {
	"priorities": {  # Lower number = higher priority
		"high": 0,
		"normal": 5,
		"low": 10,
	},
	"warn_depth": 1000,
	"max_in_memory": 5000,
}

# --------------------------------- Worker --------------------------------- #
WORKER_SETTINGS: dict[str, float] = {
	"poll_timeout": float(os.getenv("WORKER_POLL_TIMEOUT", "5.0")),
}

__all__ = [
	"TRACKER_SETTINGS",
	"CACHE_SETTINGS",
	"QUEUE_SETTINGS",
	"WORKER_SETTINGS",
]
