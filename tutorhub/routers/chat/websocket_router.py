# tutorhub/routers/chat/websocket_router.py
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import asyncio
import logging

from ...core.auth import load_viewer
from ...core.config import settings
from ...core.database import get_db
from ...core.exceptions import AuthenticationRequired, TutorHubException
from ...services.access_gate import AccessGate
from ...services.chat.feed import MessageFeed, get_message_feed
from ...services.chat.room import ChatRoomSession
from ...services.storage import BlobStorage, get_blob_storage

logger = logging.getLogger(__name__)
router = APIRouter()

CLOSE_UNAUTHENTICATED = 4401
CLOSE_FORBIDDEN = 4403

@router.websocket("/ws/chat/{tutor_id}")
async def chat_room_endpoint(
    websocket: WebSocket,
    tutor_id: int,
    student: Optional[UUID] = Query(None),
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    feed: MessageFeed = Depends(get_message_feed),
    storage: BlobStorage = Depends(get_blob_storage)
):
    """Chat room socket: gate once, then stream history, feed and session events"""
    await websocket.accept()

    try:
        viewer = await load_viewer(db, token)
        conversation = await AccessGate(db).authorize(viewer, tutor_id, student)
    except TutorHubException as e:
        logger.info(f"Chat socket refused for tutor {tutor_id}: {e.notice}")
        await websocket.send_json({"type": "access_denied", **e.detail})
        code = CLOSE_UNAUTHENTICATED if isinstance(e, AuthenticationRequired) else CLOSE_FORBIDDEN
        await websocket.close(code=code)
        return

    room = ChatRoomSession(db, conversation, feed, storage, emit=websocket.send_json)
    tasks = []
    try:
        await room.open()
        tasks.append(asyncio.create_task(room.pump_feed()))
        tasks.append(asyncio.create_task(room.run_monitor(settings.session_monitor_interval_seconds)))

        while True:
            try:
                data = await websocket.receive_json()
            except (ValueError, KeyError, TypeError) as e:
                logger.info(f"Unreadable frame from {conversation.viewer.id}: {e}")
                await websocket.send_json({"type": "error", "message": "Frames must be JSON text"})
                continue
            await room.handle_frame(data)

    except WebSocketDisconnect:
        logger.info(f"Viewer {conversation.viewer.id} left conversation tutor={tutor_id}")
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await room.close()
