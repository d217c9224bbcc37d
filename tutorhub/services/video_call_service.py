# tutorhub/services/video_call_service.py
"""Builds third-party video room URLs and launches ad hoc calls."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID
import logging

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import epoch_ms, utcnow
from ..core.config import settings
from ..models.scheduled_session import ScheduledSession
from ..models.status import SessionStatus, ensure_transition
from .access_gate import Conversation

logger = logging.getLogger(__name__)


def generate_room_name(tutor_id: int, now: Optional[datetime] = None) -> str:
    return f"tutor-{tutor_id}-{epoch_ms(now or utcnow())}"


def build_meeting_url(
    room_name: str,
    display_name: Optional[str] = None,
    email: Optional[str] = None,
    domain: Optional[str] = None
) -> str:
    url = httpx.URL(f"https://{domain or settings.jitsi_domain}/{room_name}")
    if display_name is None and email is None:
        return str(url)
    params = {
        "userInfo.name": display_name or "Tutor",
        "userInfo.email": email or "",
        "config.startWithVideoMuted": "false",
        "config.startWithAudioMuted": "false",
    }
    return str(url.copy_merge_params(params))


@dataclass(frozen=True)
class CallLaunch:
    url: str
    room_name: str
    open_after_seconds: float
    session_id: Optional[UUID] = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "room_name": self.room_name,
            "open_after_seconds": self.open_after_seconds,
            "session_id": str(self.session_id) if self.session_id else None,
        }


class VideoCallService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def launch(self, conversation: Conversation, now: Optional[datetime] = None) -> CallLaunch:
        """Build a call URL and attach it to the next upcoming session, if any."""
        now = now or utcnow()
        viewer = conversation.viewer
        room_name = generate_room_name(conversation.tutor_id, now)
        url = build_meeting_url(room_name, viewer.first_name, viewer.email)

        session_id = await self._attach_to_upcoming_session(conversation, url, now)

        return CallLaunch(
            url=url,
            room_name=room_name,
            open_after_seconds=settings.call_launch_delay_seconds,
            session_id=session_id,
        )

    async def _attach_to_upcoming_session(
        self, conversation: Conversation, url: str, now: datetime
    ) -> Optional[UUID]:
        try:
            stmt = select(ScheduledSession).where(
                ScheduledSession.tutor_id == conversation.tutor_id,
                ScheduledSession.student_id == conversation.student_id,
                ScheduledSession.status == SessionStatus.SCHEDULED,
                ScheduledSession.start_time >= now,
                ScheduledSession.is_deleted == False
            ).order_by(ScheduledSession.start_time.asc()).limit(1)
            result = await self.db.execute(stmt)
            session = result.scalar_one_or_none()
            if session is None:
                return None

            ensure_transition("session", session.status, SessionStatus.IN_PROGRESS)
            session.meeting_link = url
            session.status = SessionStatus.IN_PROGRESS
            await self.db.commit()
            logger.info(f"Session {session.id} started by call launch")
            return session.id
        except SQLAlchemyError as e:
            # The call still opens; only the session bookkeeping is lost
            await self.db.rollback()
            logger.error(f"Error updating session with meeting link: {e}")
            return None
