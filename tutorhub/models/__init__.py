# tutorhub/models/__init__.py
"""Import all models here so Alembic and create_all see every table."""
from .base import Base
from .status import SessionStatus, VerificationStatus
from .profile import Profile, UserType
from .payment import Subscription, Payment
from .assignment import StudentTutorAssignment, AssignmentStatus
from .message import Message, SenderRole
from .scheduled_session import ScheduledSession
from .rating import TeacherRating
from .verification import TeacherVerification

__all__ = [
    "Base",
    "SessionStatus",
    "VerificationStatus",
    "Profile",
    "UserType",
    "Subscription",
    "Payment",
    "StudentTutorAssignment",
    "AssignmentStatus",
    "Message",
    "SenderRole",
    "ScheduledSession",
    "TeacherRating",
    "TeacherVerification",
]
