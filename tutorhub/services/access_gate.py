# tutorhub/services/access_gate.py
"""Decides whether a viewer may enter a tutor/student conversation.

The gate runs once per chat screen. Its result, a ``Conversation``, is the
only thing later actions on that screen need: they are not re-authorized per
message.
"""
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Viewer
from ..core.exceptions import AccessDenied, AuthenticationRequired
from ..models.assignment import AssignmentStatus, StudentTutorAssignment
from ..models.message import SenderRole
from ..models.profile import Profile, UserType
from ..models.status import VerificationStatus

logger = logging.getLogger(__name__)

TEACHER_HOME = "/teacher-dashboard"
STUDENT_HOME = "/search"


@dataclass(frozen=True)
class Contact:
    id: UUID
    name: str
    image: Optional[str] = None
    subject: Optional[str] = None


@dataclass(frozen=True)
class Conversation:
    """A granted (tutor, student) pair as seen by one viewer."""
    tutor_id: int
    student_id: UUID
    viewer: Viewer
    teacher_profile_id: UUID
    teacher_name: str
    contact: Contact
    teacher_verification: Optional[VerificationStatus] = None

    @property
    def viewer_role(self) -> SenderRole:
        return self.viewer.role

    @property
    def home(self) -> str:
        return TEACHER_HOME if self.viewer_role == SenderRole.TEACHER else STUDENT_HOME

    def to_dict(self) -> dict:
        return {
            "tutor_id": self.tutor_id,
            "student_id": str(self.student_id),
            "viewer_role": self.viewer_role.value,
            "teacher_id": str(self.teacher_profile_id),
            "teacher_verification": self.teacher_verification.value if self.teacher_verification else None,
            "contact": {
                "id": str(self.contact.id),
                "name": self.contact.name,
                "image": self.contact.image,
                "subject": self.contact.subject,
            },
        }


class AccessGate:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def authorize(
        self,
        viewer: Optional[Viewer],
        tutor_id: int,
        student_id: Optional[UUID] = None
    ) -> Conversation:
        """Return the conversation or raise AuthenticationRequired / AccessDenied."""
        if viewer is None:
            raise AuthenticationRequired()

        if viewer.role == SenderRole.TEACHER:
            conversation = await self._authorize_teacher(viewer, tutor_id, student_id)
        elif viewer.role == SenderRole.STUDENT:
            conversation = await self._authorize_student(viewer, tutor_id)
        else:
            raise AccessDenied("Only students and teachers can use the chat room.", "/")

        logger.info(
            f"Viewer {viewer.id} ({viewer.role.value}) entered conversation "
            f"tutor={conversation.tutor_id} student={conversation.student_id}"
        )
        return conversation

    async def _authorize_teacher(
        self, viewer: Viewer, tutor_id: int, student_id: Optional[UUID]
    ) -> Conversation:
        if viewer.tutor_id is None or viewer.tutor_id != tutor_id:
            raise AccessDenied("You can only chat with students assigned to you.", TEACHER_HOME)

        if student_id is None:
            raise AccessDenied("Student ID is required to chat.", TEACHER_HOME)

        if not await self.has_active_assignment(tutor_id, student_id):
            raise AccessDenied("This student is not assigned to you.", TEACHER_HOME)

        student = await self._get_profile(student_id, UserType.STUDENT)
        if student is None:
            raise AccessDenied("Failed to load student data.", TEACHER_HOME)

        return Conversation(
            tutor_id=tutor_id,
            student_id=student_id,
            viewer=viewer,
            teacher_profile_id=viewer.id,
            teacher_name=viewer.full_name,
            contact=Contact(id=student.id, name=student.full_name, image=student.avatar_url),
            teacher_verification=viewer.verification_status,
        )

    async def _authorize_student(self, viewer: Viewer, tutor_id: int) -> Conversation:
        assignments = await self.active_assignments(viewer.id)
        if not any(assignment.tutor_id == tutor_id for assignment in assignments):
            raise AccessDenied("You need to book this tutor first", STUDENT_HOME)

        stmt = select(Profile).where(
            Profile.tutor_id == tutor_id,
            Profile.user_type == UserType.TEACHER,
            Profile.is_deleted == False
        )
        result = await self.db.execute(stmt)
        teacher = result.scalar_one_or_none()
        if teacher is None:
            raise AccessDenied("Failed to load tutor data.", STUDENT_HOME)

        return Conversation(
            tutor_id=tutor_id,
            student_id=viewer.id,
            viewer=viewer,
            teacher_profile_id=teacher.id,
            teacher_name=teacher.full_name,
            contact=Contact(
                id=teacher.id,
                name=teacher.full_name,
                image=teacher.avatar_url,
                subject=teacher.subject or "Unknown",
            ),
            teacher_verification=teacher.verification_status,
        )

    async def has_active_assignment(self, tutor_id: int, student_id: UUID) -> bool:
        stmt = select(StudentTutorAssignment.id).where(
            StudentTutorAssignment.tutor_id == tutor_id,
            StudentTutorAssignment.student_id == student_id,
            StudentTutorAssignment.status == AssignmentStatus.ACTIVE,
            StudentTutorAssignment.is_deleted == False
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def active_assignments(self, student_id: UUID) -> List[StudentTutorAssignment]:
        stmt = select(StudentTutorAssignment).where(
            StudentTutorAssignment.student_id == student_id,
            StudentTutorAssignment.status == AssignmentStatus.ACTIVE,
            StudentTutorAssignment.is_deleted == False
        ).order_by(StudentTutorAssignment.created_at)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _get_profile(self, profile_id: UUID, user_type: UserType) -> Optional[Profile]:
        stmt = select(Profile).where(
            Profile.id == profile_id,
            Profile.user_type == user_type,
            Profile.is_deleted == False
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
