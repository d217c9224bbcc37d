# tutorhub/services/chat/chat_service.py
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
import logging

from ..base_service import BaseService
from ..access_gate import Conversation
from ..storage import Attachment, BlobStorage, CHAT_FILES_BUCKET, validate_attachment
from ...core.clock import epoch_ms, utcnow
from ...core.exceptions import DatabaseError, ValidationError
from ...models.message import Message, SenderRole
from .feed import FeedEvent, MessageFeed

logger = logging.getLogger(__name__)

class ChatService(BaseService[Message]):
    def __init__(self, db: AsyncSession, feed: Optional[MessageFeed] = None, storage: Optional[BlobStorage] = None):
        super().__init__(Message, db)
        self.feed = feed
        self.storage = storage

    async def get_history(self, conversation: Conversation) -> List[Message]:
        """All messages of the conversation, oldest first"""
        return await self.get_multi(
            limit=None,
            order_by="created_at",
            tutor_id=conversation.tutor_id,
            student_id=conversation.student_id
        )

    async def upload_attachment(self, conversation: Conversation, attachment: Attachment) -> str:
        """Validate and upload a chat file, returning its public URL"""
        validate_attachment(attachment)
        path = f"{conversation.viewer.id}/{epoch_ms(utcnow())}.{attachment.extension}"
        return await self.storage.upload(CHAT_FILES_BUCKET, path, attachment.data, attachment.content_type)

    async def send_message(
        self,
        conversation: Conversation,
        text: str,
        file_url: Optional[str] = None,
        client_token: Optional[str] = None,
        sender_type: Optional[SenderRole] = None
    ) -> Message:
        """Persist a message and publish it to the live feed"""
        text = (text or "").strip()
        if not text and not file_url:
            raise ValidationError("Type a message or attach a file.", field="text", title="Empty message")

        message = Message(
            student_id=conversation.student_id,
            tutor_id=conversation.tutor_id,
            sender_type=sender_type or conversation.viewer_role,
            content=text,
            file_url=file_url,
            client_token=client_token,
            created_at=utcnow(),
        )
        try:
            self.db.add(message)
            await self.db.commit()
            await self.db.refresh(message)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error saving message for tutor {conversation.tutor_id}: {e}")
            raise DatabaseError("Failed to send message.")

        logger.info(f"Message {message.id} saved ({message.sender_type.value} -> tutor {message.tutor_id})")
        await self.publish(message)
        return message

    async def publish(self, message: Message):
        if self.feed is None:
            return
        try:
            await self.feed.publish(FeedEvent.from_message(message))
        except Exception as e:
            # The row is committed; readers still get it from history
            logger.error(f"Error publishing message {message.id}: {e}")
