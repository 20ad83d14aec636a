# booklog/config.py
"""
Runtime settings for the library API.

Values come from environment variables (or a local ``.env`` file) through
pydantic-settings. ``get_settings()`` is cached so the whole process shares
one instance; tests build their own ``Settings`` and hand it to
``create_app()`` instead.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PORT = 3333


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Server
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT

    # Storage
    data_file: Path = Path("data") / "library.json"

    # Validation: what to do with keys that are not part of a schema
    unknown_fields: Literal["reject", "strip"] = "reject"

    # HTTP
    max_body_bytes: int = 1024 * 1024
    cors_origins: List[str] = ["*"]
    public_dir: Path = Path("public")

    # Observability
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"


@lru_cache
def get_settings() -> Settings:
    return Settings()
