from typing import List, Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel

from ..models.message import SenderRole

class MessageOut(BaseModel):
    id: UUID
    student_id: UUID
    tutor_id: int
    sender_type: SenderRole
    content: str
    file_url: Optional[str] = None
    client_token: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class ChatEntryOut(BaseModel):
    id: str
    sender_type: SenderRole
    text: str
    timestamp: datetime
    is_mine: bool
    file_url: Optional[str] = None
    pending: bool = False

class ChatHistoryResponse(BaseModel):
    conversation: dict
    messages: List[ChatEntryOut]
    total_messages: int

class AttachmentUploadResponse(BaseModel):
    file_url: str
