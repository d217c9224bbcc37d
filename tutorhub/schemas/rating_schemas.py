from typing import List, Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field

class RatingCreate(BaseModel):
    teacher_id: UUID
    session_id: UUID
    rating: int = Field(..., ge=0, le=5)
    feedback: Optional[str] = Field(default=None, max_length=2000)

class RatingOut(BaseModel):
    id: UUID
    teacher_id: UUID
    student_id: UUID
    session_id: UUID
    rating: int
    feedback: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class RatingSubmitResponse(BaseModel):
    already_rated: bool
    message: str
    rating: Optional[RatingOut] = None

class RatingSummary(BaseModel):
    teacher_id: UUID
    average: Optional[float] = None
    count: int
    recent: List[RatingOut]
