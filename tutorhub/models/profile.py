from sqlalchemy import Column, String, Integer, Text
import enum

from .base import Base
from .status import VerificationStatus, enum_column


class UserType(str, enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"
    VERIFICATION_MEMBER = "verification_member"


class Profile(Base):
    __tablename__ = "profiles"

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=False, unique=True, index=True)
    user_type = Column(enum_column(UserType), nullable=False, index=True)

    # Public tutor number used in chat routes; teachers only
    tutor_id = Column(Integer, unique=True, nullable=True, index=True)
    subject = Column(String(100))
    avatar_url = Column(String(500))
    bio = Column(Text)
    verification_status = Column(enum_column(VerificationStatus), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_teacher(self) -> bool:
        return self.user_type == UserType.TEACHER

    @property
    def is_student(self) -> bool:
        return self.user_type == UserType.STUDENT
