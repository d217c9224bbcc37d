# tutorhub/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import time

from .core.config import settings
from .core.database import close_db_connections
from .core.error_handlers import register_exception_handlers
from .core.logging import logger, setup_logging
from .services.chat.feed import close_message_feed

from .routers import health, payments, ratings, sessions, verification
from .routers.chat import chat_router, websocket_router

setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting TutorHub session & messaging coordinator")

    yield

    logger.info("Shutting down TutorHub")
    await close_message_feed()
    await close_db_connections()
    logger.info("Shutdown complete")

app = FastAPI(
    title="TutorHub Session & Messaging Coordinator",
    description="Gated tutor/student chat, scheduled sessions and video call launch",
    version=settings.app_version,
    lifespan=lifespan
)

@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {process_time:.3f}s")
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

register_exception_handlers(app)

# Local blob storage; unused when Supabase is configured
app.mount("/media", StaticFiles(directory=settings.media_root, check_dir=False), name="media")

app.include_router(health.router)
app.include_router(chat_router)
app.include_router(websocket_router)
app.include_router(sessions.router)
app.include_router(ratings.router)
app.include_router(payments.router)
app.include_router(verification.router)

@app.get("/")
async def root():
    return {
        "message": f"{settings.app_name} v{settings.app_version}",
        "version": settings.app_version,
        "features": ["Access gate", "Realtime chat", "Session lifecycle", "Video calls"],
        "status": "active"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tutorhub.main:app", host="0.0.0.0", port=8000, reload=True)
