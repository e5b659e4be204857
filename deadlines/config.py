"""
Configuration management for Deadlines
"""
from pydantic_settings import BaseSettings
from functools import lru_cache

DEFAULT_TODO_LIMIT = 10
DEFAULT_COLOR = "#4f46e5"  # indigo


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Deadlines"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Database
    DATABASE_URL: str = "sqlite:///./deadlines.db"

    # Queue broker (QStash)
    QSTASH_URL: str = "https://qstash.upstash.io"
    QSTASH_TOKEN: str = ""
    QSTASH_CURRENT_SIGNING_KEY: str = ""
    QSTASH_NEXT_SIGNING_KEY: str = ""
    PUBLIC_BASE_URL: str = "http://localhost:8000"  # where the broker calls back
    PROTECTION_BYPASS_SECRET: str = ""  # preview deployments only

    # Plans
    FREE_TODO_LIMIT: int = DEFAULT_TODO_LIMIT

    # Todos / projects
    DEFAULT_PROJECT_COLOR: str = DEFAULT_COLOR
    TIMEZONE: str = "UTC"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
