"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from app.config import settings

    # Access settings
    db_url = settings.DATABASE_URL_RESOLVED
    ttl = settings.SESSION_TTL_DAYS
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    APP_NAME: str = "LingoFlow"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # Database. DATABASE_URL wins when set (e.g. sqlite+aiosqlite for local runs).
    DATABASE_URL: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "lingoflow"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "lingoflow"
    AUTO_CREATE_TABLES: bool = True

    @property
    def POSTGRES_URL(self) -> str:
        """Async PostgreSQL connection URL."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def POSTGRES_URL_SYNC(self) -> str:
        """Sync PostgreSQL connection URL for Alembic migrations."""
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL_RESOLVED(self) -> str:
        """Connection URL used by the async engine."""
        return self.DATABASE_URL or self.POSTGRES_URL

    # Course corpus (empty = packaged catalog)
    COURSE_CATALOG_PATH: str = ""

    # Practice sessions
    SESSION_TTL_DAYS: int = 2
    SESSION_DEFAULT_QUESTIONS: int = 10
    SESSION_MIN_QUESTIONS: int = 6
    SESSION_MAX_QUESTIONS: int = 15
    MAX_ATTEMPTS_PER_COMPLETION: int = 400

    # Adaptive selection
    RECENT_ACCURACY_WINDOW: int = 5
    SELECTION_HINT_LIMIT: int = 20

    # Learner profile
    INITIAL_HEARTS: int = 5
    XP_PER_LEARNER_LEVEL: int = 150

    # Learner settings defaults
    DEFAULT_DAILY_GOAL: int = 30
    DEFAULT_DAILY_MINUTES: int = 20
    DEFAULT_WEEKLY_GOAL_SESSIONS: int = 5

    # Course unlocking: previous category must reach either threshold
    UNLOCK_MASTERY_THRESHOLD: float = 35.0
    UNLOCK_SESSION_THRESHOLD: int = 2

    # Rate limiting (slowapi)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/minute"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


# Repository root config/, next to backend/
DEFAULT_YAML_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "default.yaml"


@lru_cache()
def load_yaml_config(path: Optional[Path] = None) -> dict[str, Any]:
    """
    Load the YAML tuning file.

    Args:
        path: File to read (defaults to config/default.yaml)

    Returns:
        Parsed mapping, or an empty dict when the file is missing or empty
    """
    config_path = path or DEFAULT_YAML_CONFIG_PATH
    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
