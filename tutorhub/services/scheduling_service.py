# tutorhub/services/scheduling_service.py
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import ensure_utc, utcnow
from ..core.config import settings
from ..core.exceptions import Conflict, DatabaseError, ValidationError
from ..models.scheduled_session import ScheduledSession
from ..models.status import SessionStatus
from ..schemas.session_schemas import ALLOWED_DURATIONS, ScheduleSessionRequest
from .access_gate import Conversation
from .base_service import BaseService
from .chat.chat_service import ChatService
from .chat.feed import MessageFeed

logger = logging.getLogger(__name__)

class SchedulingService(BaseService[ScheduledSession]):
    def __init__(self, db: AsyncSession, feed: Optional[MessageFeed] = None):
        super().__init__(ScheduledSession, db)
        self.feed = feed

    def resolve_times(self, request: ScheduleSessionRequest, now: datetime):
        """Validate the form and return (start, end) in UTC"""
        if not request.title or not request.title.strip() or not request.date or not request.time or not request.duration:
            raise ValidationError(
                "Please fill in all fields to schedule a session.",
                title="Missing information"
            )

        if request.duration not in ALLOWED_DURATIONS:
            raise ValidationError(
                f"Duration must be one of {', '.join(str(d) for d in ALLOWED_DURATIONS)} minutes.",
                field="duration",
                title="Invalid duration"
            )

        try:
            local = datetime.strptime(f"{request.date}T{request.time}", "%Y-%m-%dT%H:%M")
        except ValueError:
            raise ValidationError(
                "Please enter a valid date and time.",
                field="date",
                title="Invalid date/time"
            )

        start_time = local.replace(tzinfo=ZoneInfo(settings.scheduling_timezone)).astimezone(timezone.utc)
        if start_time <= now:
            raise ValidationError(
                "Please schedule the session for a future date and time.",
                field="date",
                title="Invalid date/time"
            )

        return start_time, start_time + timedelta(minutes=request.duration)

    async def schedule(
        self,
        conversation: Conversation,
        request: ScheduleSessionRequest,
        now: Optional[datetime] = None
    ) -> ScheduledSession:
        """Create a scheduled session and announce it in the chat"""
        now = now or utcnow()
        start_time, end_time = self.resolve_times(request, now)

        if request.idempotency_key:
            existing = await self.get_by_idempotency_key(request.idempotency_key)
            if existing is not None:
                return self._check_same_conversation(existing, conversation)

        session = ScheduledSession(
            student_id=conversation.student_id,
            tutor_id=conversation.tutor_id,
            title=request.title.strip(),
            start_time=start_time,
            end_time=end_time,
            status=SessionStatus.SCHEDULED,
            idempotency_key=request.idempotency_key,
        )
        try:
            self.db.add(session)
            await self.db.commit()
            await self.db.refresh(session)
        except IntegrityError:
            await self.db.rollback()
            # Lost a double-submit race on the same key
            existing = await self.get_by_idempotency_key(request.idempotency_key) if request.idempotency_key else None
            if existing is None:
                raise DatabaseError("Failed to schedule session.")
            return self._check_same_conversation(existing, conversation)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error scheduling session: {e}")
            raise DatabaseError("Failed to schedule session.")

        logger.info(f"Session {session.id} scheduled for tutor {session.tutor_id} at {start_time.isoformat()}")
        await self._announce(conversation, session)
        return session

    async def _announce(self, conversation: Conversation, session: ScheduledSession):
        local_start = ensure_utc(session.start_time).astimezone(ZoneInfo(settings.scheduling_timezone))
        text = f'New session scheduled: "{session.title}" on {local_start.strftime("%Y-%m-%d %H:%M %Z")}'
        try:
            await ChatService(self.db, feed=self.feed).send_message(conversation, text)
        except DatabaseError:
            logger.warning(f"Session {session.id} created but the announcement message failed")

    def _check_same_conversation(self, session: ScheduledSession, conversation: Conversation) -> ScheduledSession:
        if session.tutor_id != conversation.tutor_id or session.student_id != conversation.student_id:
            raise Conflict("This request was already used for another conversation.", title="Duplicate request")
        return session

    async def get_by_idempotency_key(self, key: str) -> Optional[ScheduledSession]:
        stmt = select(ScheduledSession).where(ScheduledSession.idempotency_key == key)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_conversation(self, conversation: Conversation) -> List[ScheduledSession]:
        return await self.get_multi(
            limit=None,
            order_by="start_time",
            tutor_id=conversation.tutor_id,
            student_id=conversation.student_id
        )
