"""Configuration management for pushbridge."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PushbridgeSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    account_settings_path: Path = Field(
        default=Path("./account.yaml"), validation_alias="PUSHBRIDGE_ACCOUNT_PATH"
    )
    storage_path: Path = Field(
        default=Path("./storage/local.json"), validation_alias="PUSHBRIDGE_STORAGE_PATH"
    )
    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="CHROMA_PERSIST_PATH"
    )
    log_level: str = Field(default="INFO", validation_alias="PUSHBRIDGE_LOG_LEVEL")
    api_url: str = Field(default="https://api.github.com", validation_alias="PUSHBRIDGE_API_URL")
    hosting_host: str = Field(default="github.com", validation_alias="PUSHBRIDGE_HOSTING_HOST")
    target_tool_host: str = Field(default="bolt.new", validation_alias="PUSHBRIDGE_TARGET_HOST")
    mirror_max_age: float = Field(default=60.0, validation_alias="PUSHBRIDGE_MIRROR_MAX_AGE")
    cleanup_interval: float = Field(default=60.0, validation_alias="PUSHBRIDGE_CLEANUP_INTERVAL")
    cleanup_max_attempts: int = Field(
        default=3, validation_alias="PUSHBRIDGE_CLEANUP_MAX_ATTEMPTS"
    )
    upload_timeout: float = Field(default=120.0, validation_alias="PUSHBRIDGE_UPLOAD_TIMEOUT")
    copy_batch_size: int = Field(default=10, validation_alias="PUSHBRIDGE_COPY_BATCH_SIZE")
    settings_poll_interval: float = Field(
        default=2.0, validation_alias="PUSHBRIDGE_SETTINGS_POLL_INTERVAL"
    )
    request_timeout: float = Field(default=30.0, validation_alias="PUSHBRIDGE_REQUEST_TIMEOUT")
    default_commit_message: str = Field(
        default="Commit from Bolt to GitHub", validation_alias="PUSHBRIDGE_COMMIT_MESSAGE"
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "PUSHBRIDGE_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator(
        "mirror_max_age",
        "cleanup_interval",
        "upload_timeout",
        "request_timeout",
        "settings_poll_interval",
    )
    @classmethod
    def _validate_positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Durations must be greater than zero seconds")
        return value

    @field_validator("cleanup_max_attempts", "copy_batch_size")
    @classmethod
    def _validate_positive_count(cls, value: int) -> int:
        if value < 1:
            raise ValueError("PUSHBRIDGE_CLEANUP_MAX_ATTEMPTS and PUSHBRIDGE_COPY_BATCH_SIZE must be >= 1")
        return value

    @field_validator("hosting_host", "target_tool_host")
    @classmethod
    def _strip_scheme(cls, value: str) -> str:
        host = value.strip()
        for prefix in ("https://", "http://"):
            if host.startswith(prefix):
                host = host[len(prefix):]
        return host.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> PushbridgeSettings:
    """Return cached settings instance."""

    settings = PushbridgeSettings()
    settings.account_settings_path = settings.account_settings_path.expanduser().resolve()
    settings.storage_path = settings.storage_path.expanduser().resolve()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    return settings


__all__ = ["PushbridgeSettings", "get_settings"]
