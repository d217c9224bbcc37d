from typing import Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.status import VerificationStatus

class ReviewRequest(BaseModel):
    approve: bool
    notes: Optional[str] = Field(default=None, max_length=2000)

class TeacherVerificationOut(BaseModel):
    id: UUID
    teacher_id: UUID
    demo_video_url: str
    admin_notes: Optional[str] = None
    status: VerificationStatus
    created_at: datetime

    class Config:
        from_attributes = True

class TeacherProfileOut(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    email: str
    tutor_id: Optional[int] = None
    subject: Optional[str] = None
    verification_status: Optional[VerificationStatus] = None

    class Config:
        from_attributes = True

class VerificationStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    waiting: int
