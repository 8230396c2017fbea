"""
Pydantic schemas for tracker inspection.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

class TrackerRead(BaseModel):
    id: int
    key: str = Field(description="Logical job key derived from job type and arguments")
    provider_job_id: Optional[str] = Field(None, description="Identifier assigned by the queue")
    scheduled_at: Optional[datetime]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
