# tutorhub/routers/dependencies.py
"""Shared request dependencies for conversation-scoped routes."""
from typing import Optional
from uuid import UUID

from fastapi import Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Viewer, get_current_viewer
from ..core.database import get_db
from ..services.access_gate import AccessGate, Conversation


async def get_conversation(
    tutor_id: int = Path(..., ge=1),
    student: Optional[UUID] = Query(None, description="Student id; required for teachers"),
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db)
) -> Conversation:
    """Run the access gate for the route's (tutor, student) pair"""
    return await AccessGate(db).authorize(viewer, tutor_id, student)
