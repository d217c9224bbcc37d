from sqlalchemy import Column, String, Text, ForeignKey, Uuid

from .base import Base
from .status import VerificationStatus, enum_column


class TeacherVerification(Base):
    """One demo submission and its review outcome."""
    __tablename__ = "teacher_verifications"

    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    demo_video_url = Column(String(1000), nullable=False)
    admin_notes = Column(Text, nullable=True)
    status = Column(enum_column(VerificationStatus), nullable=False, default=VerificationStatus.PENDING_VERIFICATION)
