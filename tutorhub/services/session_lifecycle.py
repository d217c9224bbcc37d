# tutorhub/services/session_lifecycle.py
"""Auto-start, explicit completion and rating prompts for scheduled sessions.

States move scheduled -> in_progress -> completed only. Each transition is
committed before any caller-visible state changes, so a failed write leaves
nothing to roll back.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.config import settings
from ..core.exceptions import DatabaseError, NotFound
from ..models.message import SenderRole
from ..models.rating import TeacherRating
from ..models.scheduled_session import ScheduledSession
from ..models.status import SessionStatus, ensure_transition
from .access_gate import Conversation
from .chat.feed import MessageFeed, SessionEvent
from .video_call_service import build_meeting_url, generate_room_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionStarted:
    session_id: UUID
    meeting_link: str

    def to_dict(self) -> dict:
        return {"session_id": str(self.session_id), "meeting_link": self.meeting_link}


@dataclass(frozen=True)
class RatingPrompt:
    session_id: UUID
    teacher_id: UUID
    student_id: UUID
    teacher_name: str

    def to_dict(self) -> dict:
        return {
            "session_id": str(self.session_id),
            "teacher_id": str(self.teacher_id),
            "student_id": str(self.student_id),
            "teacher_name": self.teacher_name,
        }


@dataclass(frozen=True)
class MonitorResult:
    started: Optional[SessionStarted] = None
    rating_prompt: Optional[RatingPrompt] = None



class SessionLifecycleMonitor:
    """One instance per open chat screen; prompts for a rating at most once."""

    def __init__(self, db: AsyncSession, conversation: Conversation, feed: Optional[MessageFeed] = None):
        self.db = db
        self.conversation = conversation
        self.feed = feed
        self.prompted = False

    def _conversation_filter(self):
        return (
            ScheduledSession.tutor_id == self.conversation.tutor_id,
            ScheduledSession.student_id == self.conversation.student_id,
            ScheduledSession.is_deleted == False,
        )

    async def _first(self, stmt, what: str):
        try:
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error loading {what} for tutor {self.conversation.tutor_id}: {e}")
            raise DatabaseError(f"Failed to load {what}.")

    async def check(self, now: Optional[datetime] = None) -> MonitorResult:
        now = now or utcnow()
        started = await self.auto_start(now)
        prompt = await self.pending_rating(now)
        return MonitorResult(started=started, rating_prompt=prompt)

    async def auto_start(self, now: datetime) -> Optional[SessionStarted]:
        """Start the first due session; only the teacher's screen opens rooms."""
        if self.conversation.viewer_role != SenderRole.TEACHER:
            return None

        stmt = select(ScheduledSession).where(
            *self._conversation_filter(),
            ScheduledSession.status == SessionStatus.SCHEDULED,
            ScheduledSession.start_time <= now
        ).order_by(ScheduledSession.start_time.asc()).limit(1)
        session = await self._first(stmt, "scheduled sessions")
        if session is None or session.meeting_link:
            return None

        ensure_transition("session", session.status, SessionStatus.IN_PROGRESS)
        meeting_link = build_meeting_url(generate_room_name(self.conversation.tutor_id, now))
        session_id = session.id

        # Guarded update: a racing monitor that already set the link wins
        guarded = update(ScheduledSession).where(
            ScheduledSession.id == session_id,
            ScheduledSession.status == SessionStatus.SCHEDULED,
            ScheduledSession.meeting_link.is_(None)
        ).values(
            meeting_link=meeting_link,
            status=SessionStatus.IN_PROGRESS,
            updated_at=now
        ).execution_options(synchronize_session=False)
        try:
            result = await self.db.execute(guarded)
            await self.db.commit()
            if result.rowcount != 1:
                return None
            await self.db.refresh(session)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error auto-starting session {session_id}: {e}")
            raise DatabaseError("Failed to start the scheduled session.")

        logger.info(f"Session {session_id} auto-started at {now.isoformat()}")
        return SessionStarted(session_id=session_id, meeting_link=meeting_link)

    async def pending_rating(self, now: datetime) -> Optional[RatingPrompt]:
        """Most recent session completed inside the rating window, if unrated."""
        if self.prompted or self.conversation.viewer_role != SenderRole.STUDENT:
            return None

        window_start = now - timedelta(hours=settings.rating_window_hours)
        stmt = select(ScheduledSession).where(
            *self._conversation_filter(),
            ScheduledSession.status == SessionStatus.COMPLETED,
            ScheduledSession.end_time >= window_start
        ).order_by(ScheduledSession.end_time.desc()).limit(1)
        session = await self._first(stmt, "completed sessions")
        if session is None:
            return None

        if await self.has_rating(session.id):
            return None

        return self._prompt_for(session.id)

    async def has_rating(self, session_id: UUID) -> bool:
        stmt = select(TeacherRating.id).where(
            TeacherRating.teacher_id == self.conversation.teacher_profile_id,
            TeacherRating.student_id == self.conversation.student_id,
            TeacherRating.session_id == session_id
        ).limit(1)
        return await self._first(stmt, "ratings") is not None

    def _prompt_for(self, session_id: UUID) -> RatingPrompt:
        self.prompted = True
        return RatingPrompt(
            session_id=session_id,
            teacher_id=self.conversation.teacher_profile_id,
            student_id=self.conversation.student_id,
            teacher_name=self.conversation.teacher_name,
        )

    async def completion_prompt(self, session_id: UUID) -> Optional[RatingPrompt]:
        """Prompt the student for a session that was just completed, unless rated."""
        if self.conversation.viewer_role != SenderRole.STUDENT:
            return None
        if await self.has_rating(session_id):
            return None
        return self._prompt_for(session_id)

    async def completed_elsewhere(self, session_id: UUID) -> Optional[ScheduledSession]:
        """Reload a session the other party completed; None unless it is ours and completed."""
        stmt = select(ScheduledSession).where(
            ScheduledSession.id == session_id,
            *self._conversation_filter()
        ).execution_options(populate_existing=True)
        session = await self._first(stmt, "session")
        if session is None or session.status != SessionStatus.COMPLETED:
            return None
        return session

    async def end_session(
        self, session_id: UUID
    ) -> Tuple[ScheduledSession, Optional[RatingPrompt]]:
        """Complete an in-progress session; the student is prompted right away."""
        stmt = select(ScheduledSession).where(
            ScheduledSession.id == session_id,
            *self._conversation_filter()
        )
        session = await self._first(stmt, "session")
        if session is None:
            raise NotFound("Session", session_id)

        ensure_transition("session", session.status, SessionStatus.COMPLETED)
        try:
            session.status = SessionStatus.COMPLETED
            await self.db.commit()
            await self.db.refresh(session)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error ending session {session_id}: {e}")
            raise DatabaseError("Failed to end session.")
        logger.info(f"Session {session_id} completed by {self.conversation.viewer_role.value}")

        await self._announce(session)
        prompt = await self.completion_prompt(session.id)
        return session, prompt

    async def _announce(self, session: ScheduledSession):
        if self.feed is None:
            return
        try:
            await self.feed.publish(SessionEvent.from_session(session, self.conversation.viewer_role))
        except Exception as e:
            # The status is committed; the other screen catches up on its next check
            logger.error(f"Error publishing completion of session {session.id}: {e}")
