from typing import Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.status import SessionStatus

ALLOWED_DURATIONS = (30, 60, 90, 120)

class ScheduleSessionRequest(BaseModel):
    # Completeness is checked by the scheduling service so the notice matches the form
    title: Optional[str] = None
    date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    time: Optional[str] = Field(default=None, description="HH:MM")
    duration: Optional[int] = Field(default=60, description="Minutes: 30, 60, 90 or 120")
    idempotency_key: Optional[str] = Field(default=None, max_length=64)

class ScheduledSessionOut(BaseModel):
    id: UUID
    student_id: UUID
    tutor_id: int
    title: str
    start_time: datetime
    end_time: datetime
    status: SessionStatus
    meeting_link: Optional[str] = None

    class Config:
        from_attributes = True

class EndSessionResponse(BaseModel):
    session: ScheduledSessionOut
    rating_prompt: Optional[dict] = None

class MonitorCheckResponse(BaseModel):
    started: Optional[dict] = None
    rating_prompt: Optional[dict] = None
