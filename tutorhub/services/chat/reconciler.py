# tutorhub/services/chat/reconciler.py
"""Single ordered view of a conversation's messages for one viewer.

History replaces the list wholesale; live events and optimistic echoes are
appended. Confirmation swaps an echo's temporary id for the server id in
place, so an entry never moves once shown.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from ...core.clock import ensure_utc, epoch_ms, utcnow
from ...models.message import Message, SenderRole
from .feed import FeedEvent

TEMP_ID_PREFIX = "temp-"


@dataclass(frozen=True)
class ChatEntry:
    id: str
    sender_type: SenderRole
    text: str
    timestamp: datetime
    is_mine: bool
    file_url: Optional[str] = None
    pending: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender_type": self.sender_type.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "is_mine": self.is_mine,
            "file_url": self.file_url,
            "pending": self.pending,
        }


def entry_from_message(message, viewer_role: SenderRole) -> ChatEntry:
    """Build an entry from a persisted Message or a FeedEvent."""
    sender = SenderRole(message.sender_type)
    return ChatEntry(
        id=str(message.id),
        sender_type=sender,
        text=message.content,
        timestamp=ensure_utc(message.created_at),
        is_mine=sender == viewer_role,
        file_url=message.file_url,
    )


def should_autoscroll(
    previous: Sequence[ChatEntry],
    current: Sequence[ChatEntry],
    viewer_role: SenderRole
) -> bool:
    """Scroll on the first non-empty load, then only for incoming messages."""
    if not current:
        return False
    if not previous:
        return True
    if len(current) <= len(previous):
        return False
    return any(entry.sender_type != viewer_role for entry in current[len(previous):])


class MessageStream:
    def __init__(self, viewer_role: SenderRole, student_id: UUID):
        self.viewer_role = viewer_role
        self.student_id = student_id
        self._entries: List[ChatEntry] = []

    @property
    def entries(self) -> List[ChatEntry]:
        return list(self._entries)

    def __len__(self):
        return len(self._entries)

    def index_of(self, entry_id: str) -> Optional[int]:
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return i
        return None

    def load(self, messages: Sequence[Message]) -> bool:
        """Replace local state with history; returns the autoscroll decision."""
        previous = self._entries
        ordered = sorted(messages, key=lambda m: ensure_utc(m.created_at))
        self._entries = [entry_from_message(m, self.viewer_role) for m in ordered]
        return should_autoscroll(previous, self._entries, self.viewer_role)

    def apply_feed_event(self, event: FeedEvent) -> Optional[ChatEntry]:
        """Append a live insert unless it is ours, foreign, or already shown."""
        if event.student_id != self.student_id:
            return None
        # Own inserts are already represented by the optimistic echo
        if event.sender_type == self.viewer_role:
            return None
        if self.index_of(str(event.id)) is not None:
            return None

        entry = entry_from_message(event, self.viewer_role)
        self._entries.append(entry)
        return entry

    def new_temp_id(self, now: Optional[datetime] = None) -> str:
        base = f"{TEMP_ID_PREFIX}{epoch_ms(now or utcnow())}"
        temp_id, n = base, 1
        while self.index_of(temp_id) is not None:
            temp_id = f"{base}-{n}"
            n += 1
        return temp_id

    def add_optimistic(
        self,
        text: str,
        file_url: Optional[str] = None,
        temp_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ChatEntry:
        now = now or utcnow()
        entry = ChatEntry(
            id=temp_id or self.new_temp_id(now),
            sender_type=self.viewer_role,
            text=text,
            timestamp=now,
            is_mine=True,
            file_url=file_url,
            pending=True,
        )
        self._entries.append(entry)
        return entry

    def confirm(self, temp_id: str, message: Message) -> Optional[ChatEntry]:
        """Adopt the server id and timestamp without moving the entry."""
        index = self.index_of(temp_id)
        if index is None:
            return None
        confirmed = replace(
            self._entries[index],
            id=str(message.id),
            timestamp=ensure_utc(message.created_at),
            file_url=message.file_url,
            pending=False,
        )
        self._entries[index] = confirmed
        return confirmed

    def rollback(self, temp_id: str) -> bool:
        index = self.index_of(temp_id)
        if index is None:
            return False
        del self._entries[index]
        return True
