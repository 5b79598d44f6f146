# src/speedprice/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_name: str = "SpeedPrice API"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # API Keys: Mapping von API-Key zu Bediener (JSON-String als Env-Var)
    # Format: '{"key_abc123": "quay_1", "key_xyz789": "kho"}'
    api_keys: dict[str, str] = Field(default_factory=dict)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./speedprice.db"

    # Search
    page_size: int = Field(default=30, ge=1)
    max_page_size: int = Field(default=100, ge=1)
    snapshot_ttl_seconds: float = Field(default=5.0, ge=0)
    debounce_numeric_ms: int = Field(default=80, ge=0)
    debounce_text_ms: int = Field(default=250, ge=0)
    # "local": Ranking über den lokalen Snapshot, "remote": Suche am Server
    search_backend: Literal["local", "remote"] = "local"

    # History
    history_limit: int = Field(default=100, ge=1)

    # Remote catalog (sync + remote search)
    remote_base_url: str = "http://localhost:8000"
    remote_api_key: str | None = None
    remote_timeout_seconds: float = 10.0
    barcode_lookup_order: list[str] = Field(default=["local", "remote"])

    # CORS
    cors_origins: list[str] = Field(default=["*"])

    # Rate Limiting
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
