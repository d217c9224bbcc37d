from sqlalchemy import Column, String, Integer, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
from ..models.base import Base


class AssignmentStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"


class StudentTutorAssignment(Base):
    """Entitles one student to chat and book with one tutor. Created by a verified payment."""
    __tablename__ = "student_tutor_assignments"

    student_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    tutor_id = Column(Integer, nullable=False, index=True)
    subscription_id = Column(Uuid(as_uuid=True), ForeignKey("subscriptions.id"), nullable=True)
    status = Column(String(20), nullable=False, default=AssignmentStatus.ACTIVE)

    student = relationship("Profile")
    subscription = relationship("Subscription")

    __table_args__ = (
        Index('idx_assignment_tutor_student_status', 'tutor_id', 'student_id', 'status'),
    )
