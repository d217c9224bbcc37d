# tutorhub/routers/sessions.py
"""Scheduling, lifecycle and call-launch endpoints for one conversation."""
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..schemas.session_schemas import (
    EndSessionResponse, MonitorCheckResponse, ScheduleSessionRequest, ScheduledSessionOut
)
from ..services.access_gate import Conversation
from ..services.chat.feed import MessageFeed, get_message_feed
from ..services.scheduling_service import SchedulingService
from ..services.session_lifecycle import SessionLifecycleMonitor
from ..services.video_call_service import VideoCallService
from .dependencies import get_conversation

router = APIRouter(prefix="/api/v1/chat/{tutor_id}", tags=["Sessions"])

@router.get("/sessions", response_model=List[ScheduledSessionOut])
async def list_sessions(
    conversation: Conversation = Depends(get_conversation),
    db: AsyncSession = Depends(get_db)
):
    return await SchedulingService(db).list_for_conversation(conversation)

@router.post("/sessions", response_model=ScheduledSessionOut, status_code=status.HTTP_201_CREATED)
async def schedule_session(
    request: ScheduleSessionRequest,
    conversation: Conversation = Depends(get_conversation),
    db: AsyncSession = Depends(get_db),
    feed: MessageFeed = Depends(get_message_feed)
):
    """Schedule a session and announce it in the conversation"""
    service = SchedulingService(db, feed=feed)
    return await service.schedule(conversation, request)

@router.post("/sessions/check", response_model=MonitorCheckResponse)
async def check_sessions(
    conversation: Conversation = Depends(get_conversation),
    db: AsyncSession = Depends(get_db)
):
    """One lifecycle pass: auto-start due sessions, report a pending rating"""
    result = await SessionLifecycleMonitor(db, conversation).check()
    return {
        "started": result.started.to_dict() if result.started else None,
        "rating_prompt": result.rating_prompt.to_dict() if result.rating_prompt else None,
    }

@router.post("/sessions/{session_id}/end", response_model=EndSessionResponse)
async def end_session(
    session_id: UUID,
    conversation: Conversation = Depends(get_conversation),
    db: AsyncSession = Depends(get_db),
    feed: MessageFeed = Depends(get_message_feed)
):
    """Complete an in-progress session and tell the other party's open screen"""
    session, prompt = await SessionLifecycleMonitor(db, conversation, feed=feed).end_session(session_id)
    return {"session": session, "rating_prompt": prompt.to_dict() if prompt else None}

@router.post("/calls/launch")
async def launch_call(
    conversation: Conversation = Depends(get_conversation),
    db: AsyncSession = Depends(get_db)
):
    """Build a video room URL; the client opens it after a short delay"""
    launch = await VideoCallService(db).launch(conversation)
    return launch.to_dict()
