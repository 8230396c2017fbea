"""Durable tracker storage.

Each call opens its own short-lived session so the store can be shared by the
enqueueing thread, the worker thread and API requests. Trackers are returned
detached; a tracker is persisted once it has a primary key.
"""
from __future__ import annotations

from typing import Callable, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobtracker.jobs.exceptions import StoreConflict
from jobtracker.models.db import Tracker
from jobtracker.utils import get_logger

logger = get_logger(__name__)


class TrackerStore(Protocol):
    def find_or_initialize_by_key(self, key: str) -> Tracker: ...
    def new(self, key: str) -> Tracker: ...
    def save(self, tracker: Tracker) -> Tracker: ...
    def delete(self, tracker_id: int, *, provider_job_id: Optional[str] = None) -> bool: ...
    def get(self, key: str) -> Optional[Tracker]: ...
    def list(self, *, limit: int = 50, offset: int = 0) -> list[Tracker]: ...
    def delete_by_key(self, key: str) -> bool: ...
    def count(self, key: Optional[str] = None) -> int: ...


def is_persisted(tracker: Tracker) -> bool:
    return tracker.id is not None


class SqlTrackerStore:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def new(self, key: str) -> Tracker:
        return Tracker(key=key)

    def get(self, key: str) -> Optional[Tracker]:
        with self._session_factory() as session:
            return session.scalars(select(Tracker).where(Tracker.key == key)).first()

    def find_or_initialize_by_key(self, key: str) -> Tracker:
        """Existing row for ``key`` or a new unsaved tracker."""
        return self.get(key) or self.new(key)

    def list(self, *, limit: int = 50, offset: int = 0) -> list[Tracker]:
        with self._session_factory() as session:
            stmt = select(Tracker).order_by(Tracker.id).offset(offset).limit(limit)
            return list(session.scalars(stmt).all())

    def save(self, tracker: Tracker) -> Tracker:
        """Insert or update ``tracker``; a duplicate key raises ``StoreConflict``."""
        with self._session_factory() as session:
            try:
                merged = session.merge(tracker)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.warning("Tracker key conflict", key=tracker.key, error=str(e.orig))
                raise StoreConflict(tracker.key) from e
            session.refresh(merged)
            tracker.id = merged.id
            tracker.created_at = merged.created_at
            tracker.updated_at = merged.updated_at
            return tracker

    def delete(self, tracker_id: int, *, provider_job_id: Optional[str] = None) -> bool:
        """Remove a tracker by id.

        With ``provider_job_id`` the row is only removed while it still points
        at that provider job.
        """
        with self._session_factory() as session:
            stmt = delete(Tracker).where(Tracker.id == tracker_id)
            if provider_job_id is not None:
                stmt = stmt.where(Tracker.provider_job_id == provider_job_id)
            result = session.execute(stmt)
            session.commit()
            return bool(result.rowcount)

    def delete_by_key(self, key: str) -> bool:
        with self._session_factory() as session:
            result = session.execute(delete(Tracker).where(Tracker.key == key))
            session.commit()
            return bool(result.rowcount)

    def count(self, key: Optional[str] = None) -> int:
        with self._session_factory() as session:
            stmt = select(Tracker.id)
            if key is not None:
                stmt = stmt.where(Tracker.key == key)
            return len(session.scalars(stmt).all())


__all__ = ["TrackerStore", "SqlTrackerStore", "is_persisted"]
