from sqlalchemy import Column, String, Text, Integer, ForeignKey, Index, UniqueConstraint, Uuid
import enum

from .base import Base
from .status import enum_column


class SenderRole(str, enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"


class Message(Base):
    """Append-only chat message between a student and a tutor."""
    __tablename__ = "messages"

    student_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    tutor_id = Column(Integer, nullable=False, index=True)
    sender_type = Column(enum_column(SenderRole), nullable=False)
    content = Column(Text, nullable=False, default="")
    file_url = Column(String(1000), nullable=True)

    # Temporary id of the sender's optimistic copy
    client_token = Column(String(64), nullable=True)

    __table_args__ = (
        Index('idx_message_conversation_time', 'tutor_id', 'student_id', 'created_at'),
        UniqueConstraint('student_id', 'tutor_id', 'sender_type', 'client_token', name='uq_message_client_token'),
    )
