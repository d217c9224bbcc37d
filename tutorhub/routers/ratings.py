# tutorhub/routers/ratings.py
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Viewer, get_current_viewer
from ..core.database import get_db
from ..schemas.rating_schemas import RatingCreate, RatingSubmitResponse, RatingSummary
from ..services.rating_service import RatingService

router = APIRouter(prefix="/api/v1/ratings", tags=["Ratings"])

@router.post("/", response_model=RatingSubmitResponse)
async def submit_rating(
    data: RatingCreate,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db)
):
    """Rate a completed session; repeats report already_rated"""
    result = await RatingService(db).submit(viewer, data)
    return {"already_rated": result.already_rated, "message": result.message, "rating": result.rating}

@router.get("/teacher/{teacher_id}", response_model=RatingSummary)
async def get_teacher_ratings(
    teacher_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    return await RatingService(db).summary(teacher_id)
