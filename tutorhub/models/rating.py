from sqlalchemy import Column, Integer, Text, ForeignKey, UniqueConstraint, CheckConstraint, Uuid

from .base import Base


class TeacherRating(Base):
    __tablename__ = "teacher_ratings"

    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("scheduled_sessions.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    feedback = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('teacher_id', 'student_id', 'session_id', name='uq_rating_per_session'),
        CheckConstraint('rating BETWEEN 1 AND 5', name='ck_rating_range'),
    )
