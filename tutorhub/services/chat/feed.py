# tutorhub/services/chat/feed.py
"""Realtime insert feed for the messages table.

Subscriptions are keyed by tutor id, matching the server-side filter of the
hosted change feed; each subscriber narrows to its own student itself.
Events are delivered in publish order; nothing re-sorts them. Session status
changes ride the same per-tutor channel as message inserts.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Optional, Set, Union
from uuid import UUID
import asyncio
import json
import logging

import redis.asyncio as redis

from ...core.clock import ensure_utc
from ...core.config import settings
from ...models.message import Message, SenderRole
from ...models.scheduled_session import ScheduledSession
from ...models.status import SessionStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedEvent:
    id: UUID
    student_id: UUID
    tutor_id: int
    sender_type: SenderRole
    content: str
    created_at: datetime
    file_url: Optional[str] = None
    client_token: Optional[str] = None

    @classmethod
    def from_message(cls, message: Message) -> "FeedEvent":
        return cls(
            id=message.id,
            student_id=message.student_id,
            tutor_id=message.tutor_id,
            sender_type=SenderRole(message.sender_type),
            content=message.content,
            created_at=ensure_utc(message.created_at),
            file_url=message.file_url,
            client_token=message.client_token,
        )

    def to_json(self) -> str:
        payload = asdict(self)
        payload["kind"] = "message"
        payload["id"] = str(self.id)
        payload["student_id"] = str(self.student_id)
        payload["sender_type"] = self.sender_type.value
        payload["created_at"] = self.created_at.isoformat()
        return json.dumps(payload)

    @classmethod
    def from_json(cls, raw) -> "FeedEvent":
        return cls.from_payload(json.loads(raw))

    @classmethod
    def from_payload(cls, payload: dict) -> "FeedEvent":
        return cls(
            id=UUID(payload["id"]),
            student_id=UUID(payload["student_id"]),
            tutor_id=int(payload["tutor_id"]),
            sender_type=SenderRole(payload["sender_type"]),
            content=payload["content"],
            created_at=datetime.fromisoformat(payload["created_at"]),
            file_url=payload.get("file_url"),
            client_token=payload.get("client_token"),
        )


@dataclass(frozen=True)
class SessionEvent:
    """A scheduled session changed status; shares the tutor's channel."""
    session_id: UUID
    student_id: UUID
    tutor_id: int
    status: SessionStatus
    changed_by: SenderRole

    @classmethod
    def from_session(cls, session: ScheduledSession, changed_by: SenderRole) -> "SessionEvent":
        return cls(
            session_id=session.id,
            student_id=session.student_id,
            tutor_id=session.tutor_id,
            status=SessionStatus(session.status),
            changed_by=changed_by,
        )

    def to_json(self) -> str:
        return json.dumps({
            "kind": "session",
            "session_id": str(self.session_id),
            "student_id": str(self.student_id),
            "tutor_id": self.tutor_id,
            "status": self.status.value,
            "changed_by": self.changed_by.value,
        })

    @classmethod
    def from_payload(cls, payload: dict) -> "SessionEvent":
        return cls(
            session_id=UUID(payload["session_id"]),
            student_id=UUID(payload["student_id"]),
            tutor_id=int(payload["tutor_id"]),
            status=SessionStatus(payload["status"]),
            changed_by=SenderRole(payload["changed_by"]),
        )


def decode_event(raw) -> Union[FeedEvent, SessionEvent]:
    payload = json.loads(raw)
    if payload.get("kind") == "session":
        return SessionEvent.from_payload(payload)
    return FeedEvent.from_payload(payload)


class FeedSubscription:
    """Async iterator over insert events for one tutor id."""

    def __init__(self, feed: "MessageFeed", tutor_id: int):
        self.feed = feed
        self.tutor_id = tutor_id
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> Union[FeedEvent, SessionEvent]:
        if self.closed:
            raise StopAsyncIteration
        event = await self.queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def close(self):
        if not self.closed:
            self.closed = True
            await self.feed.unsubscribe(self)
            self.queue.put_nowait(None)


class MessageFeed:
    """In-process feed; one process serves every socket of a conversation."""

    def __init__(self):
        self.subscriptions: Dict[int, Set[FeedSubscription]] = {}

    async def publish(self, event: Union[FeedEvent, SessionEvent]):
        subscribers = self.subscriptions.get(event.tutor_id, set())
        for subscription in list(subscribers):
            subscription.queue.put_nowait(event)
        logger.debug(f"Published {type(event).__name__} to {len(subscribers)} subscriber(s) of tutor {event.tutor_id}")

    async def subscribe(self, tutor_id: int) -> FeedSubscription:
        subscription = FeedSubscription(self, tutor_id)
        self.subscriptions.setdefault(tutor_id, set()).add(subscription)
        logger.info(f"Feed subscription opened for tutor {tutor_id}")
        return subscription

    async def unsubscribe(self, subscription: FeedSubscription):
        subscribers = self.subscriptions.get(subscription.tutor_id)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self.subscriptions[subscription.tutor_id]
        logger.info(f"Feed subscription closed for tutor {subscription.tutor_id}")

    async def close(self):
        for subscribers in list(self.subscriptions.values()):
            for subscription in list(subscribers):
                await subscription.close()


class RedisMessageFeed(MessageFeed):
    """Feed fanned out through Redis pub/sub so several workers share it."""

    def __init__(self, redis_url: str):
        super().__init__()
        self.redis = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
        self.readers: Dict[FeedSubscription, asyncio.Task] = {}

    @staticmethod
    def channel(tutor_id: int) -> str:
        return f"messages:tutor:{tutor_id}"

    async def publish(self, event: Union[FeedEvent, SessionEvent]):
        await self.redis.publish(self.channel(event.tutor_id), event.to_json())

    async def subscribe(self, tutor_id: int) -> FeedSubscription:
        subscription = FeedSubscription(self, tutor_id)
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel(tutor_id))
        self.readers[subscription] = asyncio.create_task(self._pump(pubsub, subscription))
        logger.info(f"Redis feed subscription opened for tutor {tutor_id}")
        return subscription

    async def _pump(self, pubsub, subscription: FeedSubscription):
        try:
            async for item in pubsub.listen():
                if item.get("type") != "message":
                    continue
                try:
                    subscription.queue.put_nowait(decode_event(item["data"]))
                except (KeyError, ValueError) as e:
                    logger.warning(f"Dropping malformed feed payload: {e}")
        finally:
            await pubsub.unsubscribe()
            await pubsub.aclose()

    async def unsubscribe(self, subscription: FeedSubscription):
        reader = self.readers.pop(subscription, None)
        if reader is not None:
            reader.cancel()
        logger.info(f"Redis feed subscription closed for tutor {subscription.tutor_id}")

    async def close(self):
        for subscription in list(self.readers):
            await subscription.close()
        await self.redis.aclose()


_feed: Optional[MessageFeed] = None

def get_message_feed() -> MessageFeed:
    """Feed singleton; Redis-backed when REDIS_URL is set."""
    global _feed

    if _feed is None:
        _feed = RedisMessageFeed(settings.redis_url) if settings.redis_url else MessageFeed()

    return _feed

async def close_message_feed():
    global _feed

    if _feed is not None:
        await _feed.close()
        _feed = None
