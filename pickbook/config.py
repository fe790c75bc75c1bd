# pickbook/config.py

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    TG_BOT_TOKEN: str
    API_BASE_URL: str = "http://localhost:8000"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Identity provider (Firebase-compatible REST)
    IDENTITY_URL: str = "https://identitytoolkit.googleapis.com/v1"
    SECURE_TOKEN_URL: str = "https://securetoken.googleapis.com/v1"
    IDENTITY_API_KEY: str = ""

    # Document store (Firestore REST)
    DOCUMENT_STORE_URL: str = "https://firestore.googleapis.com/v1"
    DOCUMENT_STORE_PROJECT: str = ""

    BOT_TIMEZONE: str = "Asia/Manila"
    HTTP_TIMEOUT: float = 10.0

    SEARCH_DEBOUNCE_SECONDS: float = 0.2
    PROFILE_DEBOUNCE_SECONDS: float = 1.5
    SESSION_TTL_SECONDS: int = 60 * 60 * 24 * 30

    TG_WEBHOOK_SECRET: Optional[str] = None
    WEBHOOK_URL: Optional[str] = None

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Settings singleton (read once from env / .env)."""
    return Settings()
