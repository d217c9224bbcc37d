from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index, Uuid

from .base import Base
from .status import SessionStatus, enum_column


class ScheduledSession(Base):
    __tablename__ = "scheduled_sessions"

    student_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    tutor_id = Column(Integer, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(enum_column(SessionStatus), nullable=False, default=SessionStatus.SCHEDULED)
    meeting_link = Column(String(1000), nullable=True)
    idempotency_key = Column(String(64), nullable=True, unique=True)

    __table_args__ = (
        Index('idx_session_conversation_status', 'tutor_id', 'student_id', 'status'),
    )
