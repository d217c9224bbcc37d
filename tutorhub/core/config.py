# tutorhub/core/config.py
"""Application configuration using Pydantic."""
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    database_url: str = 'sqlite+aiosqlite:///./tutorhub.db'
    redis_url: Optional[str] = None
    jwt_secret_key: str = 'change-me'
    jwt_algorithm: str = 'HS256'

    app_name: str = 'tutorhub'
    app_version: str = '1.0.0'
    environment: str = 'development'
    log_level: str = 'info'
    allowed_origins: List[str] = ['*']

    # Video calls
    jitsi_domain: str = 'meet.jit.si'
    call_launch_delay_seconds: float = 1.5

    # Session lifecycle
    session_monitor_interval_seconds: int = 60
    rating_window_hours: int = 24
    scheduling_timezone: str = 'UTC'

    # Uploads
    max_attachment_bytes: int = 5 * 1024 * 1024
    max_demo_video_bytes: int = 100 * 1024 * 1024
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    media_root: str = './media'
    public_base_url: str = 'http://localhost:8000'

    # Payments
    razorpay_key_id: str = ''
    razorpay_key_secret: str = ''
    razorpay_api_url: str = 'https://api.razorpay.com/v1'
    subscription_days: int = 30

    model_config = {
        'env_file': '.env',
        'extra': 'ignore'
    }

settings = Settings()
