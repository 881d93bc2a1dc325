"""
Application Configuration
Manages all environment variables and settings
"""
from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "KYC Onboarding Gateway"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Local cache of submitted applications
    DATABASE_URL: str = "sqlite+aiosqlite:///./onboarding_cache.db"

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # Primary API (OCR extraction + workflow start)
    API_BASE_URL: str = "http://localhost:8080"
    OCR_EXTRACT_PATH: str = "/api/ocr/extract"
    WORKFLOW_START_PATH: str = "/onboarding/start"

    # Task-list backend (separate host/port from the primary API)
    TASKLIST_BASE_URL: str = "http://localhost:5174"
    TASK_PAGE_SIZE: int = 100

    # Timeouts for outbound calls, in seconds
    OCR_TIMEOUT_SECONDS: float = 30.0
    UPSTREAM_TIMEOUT_SECONDS: float = 30.0

    # File Upload
    MAX_FILE_SIZE_MB: int = 10
    TEMP_UPLOAD_DIR: str = "./temp_uploads"

    # Extraction / autofill
    PREFER_EXTRACTED: bool = False  # False: extracted values only fill blank fields
    ADDRESS_SAMPLE_FALLBACKS: bool = True

    # Alerts, sessions and background refresh
    ALERT_TTL_SECONDS: int = 5
    SESSION_TTL_HOURS: int = 24
    SWEEP_INTERVAL_SECONDS: int = 60
    TASK_AUTO_REFRESH: bool = True
    TASK_REFRESH_INTERVAL_SECONDS: int = 30

    # Request Logging
    REQUEST_LOG_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
