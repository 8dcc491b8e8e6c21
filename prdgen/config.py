"""Configuration settings with Pydantic."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings, read from `PRDGEN_*` environment variables or `.env`."""

    model_config = SettingsConfigDict(env_prefix="PRDGEN_", env_file=".env", extra="ignore")

    default_model: str = "gpt-4o-mini"
    default_temperature: float = Field(0.7, ge=0.0, le=2.0)
    default_max_tokens: int = Field(1000, gt=0)
    request_timeout_s: float = Field(60.0, gt=0)

    rate_limit_max_requests: int = Field(60, ge=1)
    rate_limit_window_s: float = Field(60.0, gt=0)

    credentials_path: Path = Path.home() / ".prdgen" / "credentials.json"
    # When set, keys live in a secret-manager proxy and all provider traffic goes through it.
    secret_proxy_url: Optional[str] = None
    catalog_path: Optional[Path] = None

    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    perplexity_base_url: str = "https://api.perplexity.ai"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
