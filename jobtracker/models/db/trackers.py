from __future__ import annotations
"""SQLAlchemy model for job trackers (one live row per logical job key)."""
from datetime import datetime
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from jobtracker.database import Base

if TYPE_CHECKING:  # pragma: no cover
    from jobtracker.jobs.base import JobInvocation

class Tracker(Base):
    __tablename__ = "trackers"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    key: Mapped[str] = mapped_column(String(512), nullable=False, unique=True, index=True)
    provider_job_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    def track_job(self, invocation: JobInvocation) -> "Tracker":
        """Point this tracker at the provider job of ``invocation``."""
        self.provider_job_id = invocation.provider_job_id
        self.scheduled_at = invocation.scheduled_at
        return self

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Tracker key={self.key!r} provider_job_id={self.provider_job_id!r}>"
