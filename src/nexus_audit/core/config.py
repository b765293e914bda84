# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Application configuration via environment variables and .env files."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NEXUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )

    # Database
    db_path: Path = Path("nexus_audit.db")
    auto_migrate: bool = True

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 10000
    api_workers: int = 1
    api_keys: list[str] = []
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5000"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v: object) -> list[str]:
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v if isinstance(v, list) else []

    @field_validator("api_keys", mode="before")
    @classmethod
    def _parse_api_keys(cls, v: object) -> list[str]:
        if isinstance(v, str):
            return [k.strip() for k in v.split(",") if k.strip()]
        return v if isinstance(v, list) else []

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Audit trail
    audit_log_dir: Path | None = None  # daily JSONL mirror, disabled when unset
    default_page_size: int = 50
    max_page_size: int = 200

    # Retention
    retention_days: int = 90
    retention_interval_hours: float = 0  # 0 disables the background sweeper

    # Notification hub
    ws_send_timeout: float = 5.0


def get_settings() -> Settings:
    return Settings()
