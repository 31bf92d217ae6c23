"""
Library configuration settings.
"""
import logging
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Application
    APP_ENV: str = "development"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./votekit.db"

    # Voting
    DEFAULT_VOTE_COUNTER_COLUMN: str = "vote_count"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Apply LOG_LEVEL to the votekit logger hierarchy."""
    logging.getLogger("votekit").setLevel((level or settings.LOG_LEVEL).upper())
