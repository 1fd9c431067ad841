"""
Configuration settings for model-one.

Uses Pydantic Settings to load environment variables for the SQLite database
location, executor retry behaviour, logging, and repository defaults.
"""
from __future__ import annotations

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_path: str = Field("model_one.db", alias="SQLITE_DB_PATH")
    db_timeout_seconds: float = Field(5.0, alias="SQLITE_TIMEOUT_SECONDS")
    db_retry_attempts: int = Field(3, alias="SQLITE_RETRY_ATTEMPTS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Repository defaults
    check_uniques: bool = Field(True, alias="CHECK_UNIQUES")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
