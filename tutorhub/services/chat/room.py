# tutorhub/services/chat/room.py
"""Server-side state of one open chat screen.

A ChatRoomSession is created after the access gate admits the viewer and
lives as long as the socket. It owns the reconciled message list, the feed
subscription and the lifecycle monitor; every action it runs reports its
own failures as notice frames and leaves the room usable.
"""
from datetime import datetime
from typing import Awaitable, Callable, Optional
from uuid import UUID
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.clock import utcnow
from ...core.exceptions import DatabaseError, TutorHubException, ValidationError
from ...models.message import SenderRole
from ...models.status import SessionStatus
from ...schemas.session_schemas import ScheduleSessionRequest, ScheduledSessionOut
from ..access_gate import Conversation
from ..scheduling_service import SchedulingService
from ..session_lifecycle import MonitorResult, SessionLifecycleMonitor
from ..storage import BlobStorage
from ..video_call_service import VideoCallService
from .chat_service import ChatService
from .feed import FeedSubscription, MessageFeed, SessionEvent
from .reconciler import ChatEntry, MessageStream, should_autoscroll

logger = logging.getLogger(__name__)

Emit = Callable[[dict], Awaitable[None]]


def notice_frame(exc: TutorHubException) -> dict:
    detail = exc.detail if isinstance(exc.detail, dict) else {"message": str(exc.detail)}
    return {
        "type": "notice",
        "variant": "destructive",
        "title": detail.get("error", "Error"),
        "message": detail.get("message", ""),
    }


def session_dict(session) -> dict:
    return ScheduledSessionOut.model_validate(session).model_dump(mode="json")


class ChatRoomSession:
    def __init__(
        self,
        db: AsyncSession,
        conversation: Conversation,
        feed: MessageFeed,
        storage: Optional[BlobStorage],
        emit: Emit,
        clock: Callable[[], datetime] = utcnow
    ):
        self.conversation = conversation
        self.feed = feed
        self.emit = emit
        self.clock = clock
        self.stream = MessageStream(conversation.viewer_role, conversation.student_id)
        self.chat = ChatService(db, feed=feed, storage=storage)
        self.monitor = SessionLifecycleMonitor(db, conversation, feed=feed)
        self.scheduling = SchedulingService(db, feed=feed)
        self.calls = VideoCallService(db)
        self.subscription: Optional[FeedSubscription] = None
        # One AsyncSession serves the socket loop and the monitor task
        self._db_lock = asyncio.Lock()

    async def _notify(self, exc: TutorHubException):
        await self.emit(notice_frame(exc))

    async def open(self):
        """Load history, start listening and run the first lifecycle check"""
        async with self._db_lock:
            history = await self.chat.get_history(self.conversation)
        autoscroll = self.stream.load(history)
        await self.emit({
            "type": "history",
            "conversation": self.conversation.to_dict(),
            "messages": [entry.to_dict() for entry in self.stream.entries],
            "autoscroll": autoscroll,
        })
        self.subscription = await self.feed.subscribe(self.conversation.tutor_id)
        await self.check_sessions()

    async def pump_feed(self):
        if self.subscription is None:
            return
        async for event in self.subscription:
            if isinstance(event, SessionEvent):
                await self.on_session_event(event)
                continue
            previous = self.stream.entries
            entry = self.stream.apply_feed_event(event)
            if entry is None:
                continue
            await self.emit({
                "type": "new_message",
                "message": entry.to_dict(),
                "autoscroll": should_autoscroll(previous, self.stream.entries, self.conversation.viewer_role),
            })

    async def run_monitor(self, interval_seconds: float):
        """Periodic lifecycle pass; a failed pass is reported and the next one still runs"""
        while True:
            await asyncio.sleep(interval_seconds)
            await self.check_sessions()

    async def send(
        self,
        text: str,
        file_url: Optional[str] = None,
        temp_id: Optional[str] = None
    ) -> Optional[ChatEntry]:
        """Optimistic send; files are uploaded beforehand and arrive as ``file_url``"""
        text = (text or "").strip()
        if not text and not file_url:
            return None

        if temp_id is not None and (len(temp_id) > 64 or self.stream.index_of(temp_id) is not None):
            temp_id = None
        entry = self.stream.add_optimistic(text, file_url=file_url, temp_id=temp_id, now=self.clock())
        await self.emit({"type": "message_pending", "message": entry.to_dict()})

        try:
            async with self._db_lock:
                message = await self.chat.send_message(
                    self.conversation, text, file_url=file_url, client_token=entry.id
                )
        except TutorHubException as e:
            self.stream.rollback(entry.id)
            await self.emit({"type": "message_failed", "temp_id": entry.id, "notice": notice_frame(e)})
            return None

        confirmed = self.stream.confirm(entry.id, message)
        await self.emit({"type": "message_confirmed", "temp_id": entry.id, "message": confirmed.to_dict()})
        return confirmed

    async def check_sessions(self) -> Optional[MonitorResult]:
        try:
            async with self._db_lock:
                result = await self.monitor.check(self.clock())
        except TutorHubException as e:
            await self._notify(e)
            return None
        except SQLAlchemyError as e:
            logger.error(f"Session check failed for tutor {self.conversation.tutor_id}: {e}")
            await self._notify(DatabaseError("Failed to check scheduled sessions."))
            return None

        if result.started is not None:
            await self.emit({
                "type": "session_started",
                "title": "Starting Session",
                "message": "Your scheduled session is starting now.",
                "open_url": result.started.meeting_link,
                **result.started.to_dict(),
            })
        if result.rating_prompt is not None:
            await self.emit({"type": "rating_prompt", **result.rating_prompt.to_dict()})
        return result

    async def end_session(self, session_id: UUID):
        try:
            async with self._db_lock:
                session, prompt = await self.monitor.end_session(session_id)
        except TutorHubException as e:
            await self._notify(e)
            return None
        except SQLAlchemyError as e:
            logger.error(f"Ending session {session_id} failed: {e}")
            await self._notify(DatabaseError("Failed to end session."))
            return None

        await self._session_ended(session, prompt)
        return session

    async def on_session_event(self, event: SessionEvent):
        """React to the other party completing a session of this conversation"""
        if event.student_id != self.conversation.student_id:
            return
        if event.changed_by == self.conversation.viewer_role or event.status != SessionStatus.COMPLETED:
            return

        try:
            async with self._db_lock:
                session = await self.monitor.completed_elsewhere(event.session_id)
                prompt = await self.monitor.completion_prompt(event.session_id) if session is not None else None
        except TutorHubException as e:
            await self._notify(e)
            return
        except SQLAlchemyError as e:
            logger.error(f"Loading ended session {event.session_id} failed: {e}")
            await self._notify(DatabaseError("Failed to load the ended session."))
            return

        if session is not None:
            await self._session_ended(session, prompt)

    async def _session_ended(self, session, prompt):
        await self.emit({
            "type": "session_ended",
            "title": "Session ended",
            "message": "Please rate your experience." if self.conversation.viewer_role == SenderRole.STUDENT else "The session has been completed.",
            "session": session_dict(session),
        })
        if prompt is not None:
            await self.emit({"type": "rating_prompt", **prompt.to_dict()})

    async def launch_call(self):
        async with self._db_lock:
            launch = await self.calls.launch(self.conversation, self.clock())
        await self.emit({
            "type": "call_launch",
            "title": "Video call initiated",
            "message": "Setting up your video call connection...",
            **launch.to_dict(),
        })
        return launch

    async def schedule(self, request: ScheduleSessionRequest):
        try:
            async with self._db_lock:
                session = await self.scheduling.schedule(self.conversation, request, self.clock())
        except TutorHubException as e:
            await self._notify(e)
            return None

        await self.emit({
            "type": "session_scheduled",
            "title": "Session scheduled",
            "message": "Your tutoring session has been scheduled successfully.",
            "session": session_dict(session),
        })
        return session

    async def handle_frame(self, data: dict):
        """Dispatch one client frame"""
        frame_type = data.get("type") if isinstance(data, dict) else None
        try:
            if frame_type == "send_message":
                await self.send(data.get("text", ""), file_url=data.get("file_url"), temp_id=data.get("client_token"))
            elif frame_type == "end_session":
                await self.end_session(UUID(str(data.get("session_id"))))
            elif frame_type == "check_sessions":
                await self.check_sessions()
            elif frame_type == "launch_call":
                await self.launch_call()
            elif frame_type == "schedule_session":
                await self.schedule(ScheduleSessionRequest.model_validate(data.get("session") or {}))
            else:
                await self.emit({"type": "error", "message": f"Unknown message type: {frame_type}"})
        except (ValueError, TypeError) as e:
            logger.info(f"Malformed {frame_type} frame from {self.conversation.viewer.id}: {e}")
            await self._notify(ValidationError("Malformed request", title="Invalid request"))
        except TutorHubException as e:
            await self._notify(e)
        except SQLAlchemyError as e:
            logger.error(f"{frame_type} frame from {self.conversation.viewer.id} failed: {e}")
            await self._notify(DatabaseError("Request failed. Please try again."))

    async def close(self):
        if self.subscription is not None:
            await self.subscription.close()
            self.subscription = None
