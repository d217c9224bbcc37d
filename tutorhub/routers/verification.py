# tutorhub/routers/verification.py
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Viewer, get_current_viewer
from ..core.config import settings
from ..core.database import get_db
from ..core.exceptions import AccessDenied
from ..schemas.verification_schemas import (
    ReviewRequest, TeacherProfileOut, TeacherVerificationOut, VerificationStats
)
from ..services.storage import BlobStorage, get_blob_storage
from ..services.verification_service import VerificationService
from .chat.chat_router import read_upload

router = APIRouter(prefix="/api/v1/verification", tags=["Teacher Verification"])

def require_reviewer(viewer: Viewer = Depends(get_current_viewer)) -> Viewer:
    if not viewer.is_reviewer:
        raise AccessDenied("Only verification members can review teachers.", "/")
    return viewer

@router.post("/demo", response_model=TeacherVerificationOut, status_code=status.HTTP_201_CREATED)
async def upload_demo_video(
    file: UploadFile = File(...),
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage)
):
    """Upload a teaching demo and request verification"""
    video = await read_upload(file, settings.max_demo_video_bytes)
    return await VerificationService(db, storage).upload_demo(viewer, video)

@router.get("/pending", response_model=List[TeacherProfileOut])
async def list_pending_teachers(
    reviewer: Viewer = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db)
):
    return await VerificationService(db).pending_teachers()

@router.post("/{teacher_id}/review", response_model=TeacherProfileOut)
async def review_teacher(
    teacher_id: UUID,
    data: ReviewRequest,
    reviewer: Viewer = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db)
):
    return await VerificationService(db).review(reviewer, teacher_id, data.approve, data.notes)

@router.get("/stats", response_model=VerificationStats)
async def get_verification_stats(
    reviewer: Viewer = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db)
):
    return await VerificationService(db).stats()
