# tutorhub/routers/chat/chat_router.py
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.config import settings
from ...core.database import get_db
from ...schemas.chat_schemas import AttachmentUploadResponse, ChatHistoryResponse, MessageOut
from ...services.access_gate import Conversation
from ...services.chat.chat_service import ChatService
from ...services.chat.feed import MessageFeed, get_message_feed
from ...services.chat.reconciler import MessageStream
from ...services.storage import Attachment, BlobStorage, get_blob_storage
from ..dependencies import get_conversation

router = APIRouter(prefix="/api/v1/chat", tags=["Chat"])

async def read_upload(file: UploadFile, limit: int) -> Attachment:
    # One byte past the limit is enough to reject oversize files
    data = await file.read(limit + 1)
    return Attachment(
        filename=file.filename or "upload",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )

@router.get("/{tutor_id}/messages", response_model=ChatHistoryResponse)
async def get_chat_history(
    conversation: Conversation = Depends(get_conversation),
    db: AsyncSession = Depends(get_db)
):
    """Conversation history as the viewer sees it, oldest first"""
    service = ChatService(db)
    messages = await service.get_history(conversation)

    stream = MessageStream(conversation.viewer_role, conversation.student_id)
    stream.load(messages)

    return {
        "conversation": conversation.to_dict(),
        "messages": [entry.to_dict() for entry in stream.entries],
        "total_messages": len(stream),
    }

@router.post("/{tutor_id}/attachments", response_model=AttachmentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    file: UploadFile = File(...),
    conversation: Conversation = Depends(get_conversation),
    db: AsyncSession = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage)
):
    """Upload a chat file ahead of sending it over the socket"""
    attachment = await read_upload(file, settings.max_attachment_bytes)
    service = ChatService(db, storage=storage)
    return {"file_url": await service.upload_attachment(conversation, attachment)}

@router.post("/{tutor_id}/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(
    text: str = Form(""),
    client_token: Optional[str] = Form(None, max_length=64),
    file: Optional[UploadFile] = File(None),
    conversation: Conversation = Depends(get_conversation),
    db: AsyncSession = Depends(get_db),
    feed: MessageFeed = Depends(get_message_feed),
    storage: BlobStorage = Depends(get_blob_storage)
):
    """Send a message, optionally with one attachment"""
    service = ChatService(db, feed=feed, storage=storage)

    file_url = None
    if file is not None and file.filename:
        attachment = await read_upload(file, settings.max_attachment_bytes)
        file_url = await service.upload_attachment(conversation, attachment)

    return await service.send_message(conversation, text, file_url=file_url, client_token=client_token)
