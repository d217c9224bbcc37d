from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

from .exceptions import TutorHubException

logger = logging.getLogger(__name__)

async def tutorhub_exception_handler(request: Request, exc: TutorHubException):
    """Render coordinator exceptions as notices"""
    logger.warning(f"{exc.__class__.__name__}: {exc.notice} - Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": exc.__class__.__name__},
        headers=exc.headers
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unexpected error: {str(exc)} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": {"error": "Internal server error", "message": "Something went wrong"},
            "type": "InternalError"
        }
    )

def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(TutorHubException, tutorhub_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
