# tutorhub/services/rating_service.py
from dataclasses import dataclass
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Viewer
from ..core.exceptions import AccessDenied, Conflict, DatabaseError, NotFound, ValidationError
from ..models.message import SenderRole
from ..models.profile import Profile
from ..models.rating import TeacherRating
from ..models.scheduled_session import ScheduledSession
from ..models.status import SessionStatus
from ..schemas.rating_schemas import RatingCreate
from .base_service import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingResult:
    already_rated: bool
    rating: Optional[TeacherRating] = None

    @property
    def message(self) -> str:
        if self.already_rated:
            return "You have already submitted a rating for this session"
        return "Thank you for your feedback!"


class RatingService(BaseService[TeacherRating]):
    def __init__(self, db: AsyncSession):
        super().__init__(TeacherRating, db)

    async def submit(self, viewer: Viewer, data: RatingCreate) -> RatingResult:
        """Record a student's rating; a repeat for the same session is benign"""
        if viewer.role != SenderRole.STUDENT:
            raise AccessDenied("Only students can rate sessions.")

        if data.rating == 0:
            raise ValidationError("Please select a rating before submitting", field="rating", title="Rating required")

        session = await self.db.get(ScheduledSession, data.session_id)
        if session is None or session.student_id != viewer.id:
            raise NotFound("Session", data.session_id)
        if session.status != SessionStatus.COMPLETED:
            raise Conflict("Only completed sessions can be rated.")

        teacher = await self.db.get(Profile, data.teacher_id)
        if teacher is None or teacher.tutor_id != session.tutor_id:
            raise NotFound("Teacher", data.teacher_id)

        rating = TeacherRating(
            teacher_id=data.teacher_id,
            student_id=viewer.id,
            session_id=data.session_id,
            rating=data.rating,
            feedback=(data.feedback or "").strip() or None,
        )
        try:
            self.db.add(rating)
            await self.db.commit()
            await self.db.refresh(rating)
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Duplicate rating for session {data.session_id} by {viewer.id}")
            return RatingResult(already_rated=True)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error submitting rating: {e}")
            raise DatabaseError("Failed to submit rating. Please try again.")

        logger.info(f"Rating {rating.id} ({rating.rating}/5) recorded for teacher {rating.teacher_id}")
        return RatingResult(already_rated=False, rating=rating)

    async def summary(self, teacher_id: UUID, recent_limit: int = 5) -> dict:
        stmt = select(func.avg(TeacherRating.rating), func.count(TeacherRating.id)).where(
            TeacherRating.teacher_id == teacher_id,
            TeacherRating.is_deleted == False
        )
        average, count = (await self.db.execute(stmt)).one()

        recent = await self.get_multi(limit=recent_limit, order_by="created_at", sort="desc", teacher_id=teacher_id)

        return {
            "teacher_id": teacher_id,
            "average": round(float(average), 2) if average is not None else None,
            "count": count,
            "recent": recent,
        }
