"""
Configuration settings for the Gallery client
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Gallery Client"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Hosted backend (REST, RPC, auth and storage share one base URL)
    SUPABASE_URL: str = "http://localhost:54321"
    SUPABASE_ANON_KEY: str = ""
    STORAGE_BUCKET: str = "images"

    # HTTP
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    CONNECT_TIMEOUT_SECONDS: float = 10.0

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Cache TTL (seconds)
    CACHE_TTL_SECONDS: float = 120  # 2 minutes: follow status, follow stats, comments
    CACHE_TTL_IMAGES: float = 300  # 5 minutes
    CACHE_TTL_PROFILES: float = 300  # 5 minutes

    # Uploads
    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024  # 10MB
    ALLOWED_IMAGE_TYPES: List[str] = [
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
    ]

    # Notifications
    NOTIFICATION_POLL_INTERVAL_SECONDS: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
