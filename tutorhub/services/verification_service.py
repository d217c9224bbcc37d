# tutorhub/services/verification_service.py
from datetime import datetime
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Viewer
from ..core.clock import epoch_ms, utcnow
from ..core.config import settings
from ..core.exceptions import AccessDenied, DatabaseError, NotFound, ValidationError
from ..models.profile import Profile, UserType
from ..models.status import VerificationStatus, ensure_transition
from ..models.verification import TeacherVerification
from .base_service import BaseService
from .storage import Attachment, BlobStorage, TEACHER_DEMOS_BUCKET

logger = logging.getLogger(__name__)

class VerificationService(BaseService[TeacherVerification]):
    def __init__(self, db: AsyncSession, storage: Optional[BlobStorage] = None):
        super().__init__(TeacherVerification, db)
        self.storage = storage

    async def _get_teacher(self, teacher_id: UUID) -> Profile:
        profile = await self.db.get(Profile, teacher_id)
        if profile is None or profile.user_type != UserType.TEACHER:
            raise NotFound("Teacher", teacher_id)
        return profile

    async def upload_demo(
        self,
        viewer: Viewer,
        video: Attachment,
        now: Optional[datetime] = None
    ) -> TeacherVerification:
        """Store a teaching demo and move the teacher to pending verification"""
        now = now or utcnow()
        if viewer.user_type != UserType.TEACHER:
            raise AccessDenied("Only teachers can upload a demo video.", "/")

        if not video.data:
            raise ValidationError("Please select a file to upload", field="file")
        if not video.content_type.startswith("video/"):
            raise ValidationError("Demo must be a video file", field="file", title="Invalid file type")
        if video.size > settings.max_demo_video_bytes:
            raise ValidationError(
                f"File size must be less than {settings.max_demo_video_bytes // (1024 * 1024)}MB",
                field="file",
                title="File too large"
            )

        teacher = await self._get_teacher(viewer.id)
        current = teacher.verification_status or VerificationStatus.WAITING_DEMO
        ensure_transition("verification", current, VerificationStatus.PENDING_VERIFICATION)

        path = f"{teacher.id}/demo-{epoch_ms(now)}.mp4"
        url = await self.storage.upload(TEACHER_DEMOS_BUCKET, path, video.data, video.content_type)

        verification = TeacherVerification(
            teacher_id=teacher.id,
            demo_video_url=url,
            status=VerificationStatus.PENDING_VERIFICATION,
        )
        try:
            teacher.verification_status = VerificationStatus.PENDING_VERIFICATION
            self.db.add(verification)
            await self.db.commit()
            await self.db.refresh(verification)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error saving demo for teacher {teacher.id}: {e}")
            raise DatabaseError("Failed to upload demo video")

        logger.info(f"Teacher {teacher.id} submitted a demo; now pending verification")
        return verification

    async def review(
        self,
        reviewer: Viewer,
        teacher_id: UUID,
        approve: bool,
        notes: Optional[str] = None
    ) -> Profile:
        """Approve or reject a pending teacher"""
        if not reviewer.is_reviewer:
            raise AccessDenied("Only verification members can review teachers.", "/")

        teacher = await self._get_teacher(teacher_id)
        target = VerificationStatus.APPROVED if approve else VerificationStatus.REJECTED
        ensure_transition(
            "verification",
            teacher.verification_status or VerificationStatus.WAITING_DEMO,
            target
        )

        latest = await self.latest_submission(teacher_id)
        try:
            teacher.verification_status = target
            if latest is not None:
                latest.status = target
                latest.admin_notes = notes
            await self.db.commit()
            await self.db.refresh(teacher)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error updating teacher verification: {e}")
            raise DatabaseError("Failed to update teacher verification")

        logger.info(f"Teacher {teacher_id} {target.value} by {reviewer.id}. Notes: {notes or 'None'}")
        return teacher

    async def latest_submission(self, teacher_id: UUID) -> Optional[TeacherVerification]:
        submissions = await self.get_multi(limit=1, order_by="created_at", sort="desc", teacher_id=teacher_id)
        return submissions[0] if submissions else None

    async def pending_teachers(self) -> List[Profile]:
        stmt = select(Profile).where(
            Profile.user_type == UserType.TEACHER,
            Profile.verification_status == VerificationStatus.PENDING_VERIFICATION,
            Profile.is_deleted == False
        ).order_by(Profile.created_at)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def stats(self) -> dict:
        stmt = select(Profile.verification_status, func.count(Profile.id)).where(
            Profile.user_type == UserType.TEACHER,
            Profile.is_deleted == False
        ).group_by(Profile.verification_status)
        counts = {status: count for status, count in (await self.db.execute(stmt)).all()}

        return {
            "total": sum(counts.values()),
            "pending": counts.get(VerificationStatus.PENDING_VERIFICATION, 0),
            "approved": counts.get(VerificationStatus.APPROVED, 0),
            "rejected": counts.get(VerificationStatus.REJECTED, 0),
            "waiting": counts.get(VerificationStatus.WAITING_DEMO, 0),
        }
