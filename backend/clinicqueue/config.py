"""
Application configuration using Pydantic Settings.
Loads from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Clinic Queue"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "clinicqueue"

    # JWT Authentication
    SECRET_KEY: str = "clinicqueue-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12  # one working day

    # Queue API client
    API_URL: str = "http://localhost:8000"
    API_TOKEN: str = ""
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Queue coordinator
    POLL_INTERVAL_SECONDS: float = 30.0
    RECONCILE_DELAY_SECONDS: float = 2.0
    FALLBACK_ID_PREFIXES: List[str] = ["temp_", "fallback_"]
    QUEUE_CACHE_FILE: str = ""  # empty keeps the cache in memory

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
