"""Health check endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
import logging

from ..core.config import settings
from ..core.database import get_db, health_check_db

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])

@router.get("/")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }

@router.get("/db-health")
async def database_health():
    healthy = await health_check_db()
    return {"status": "healthy" if healthy else "unhealthy", "database": settings.database_url.split(":", 1)[0]}

@router.get("/db-session-test")
async def database_session_test(session: AsyncSession = Depends(get_db)):
    """Test database using session dependency"""
    try:
        result = await session.execute(text("SELECT 1 AS test"))
        return {"status": "healthy", "test_result": result.scalar_one()}
    except Exception as e:
        logger.error(f"Session test failed: {e}")
        return {"status": "error", "error": str(e)}
