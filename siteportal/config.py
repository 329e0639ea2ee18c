"""
SitePortal — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import logging
import os
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

# Load .env from project root (two levels up from siteportal/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # LLM — provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""

    # Local key-value store (SQLite file, or ":memory:")
    DATABASE_PATH: str = "data/portal.db"
    STORAGE_PREFIX: str = "wmhi_"

    # Calendar day boundaries for task buckets and the dashboard
    TIMEZONE: str = "Europe/London"

    # Branding used in generated client messages
    COMPANY_NAME: str = "West Midlands Home Improvements"
    COMPANY_SIGNOFF: str = "The WMHI Team"

    @field_validator("LLM_PROVIDER", mode="before")
    @classmethod
    def normalize_provider(cls, v: str | None) -> str:
        return (v or "gemini").strip().lower()

    @field_validator("TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        ZoneInfo(v)  # raises for unknown zones
        return v


def _load_settings() -> Settings:
    """Load settings from environment."""
    llm_api_key = os.getenv("LLM_API_KEY", "")
    if not llm_api_key or llm_api_key.startswith("your-"):
        logger.warning("LLM_API_KEY is missing — AI summaries and drafts will fail")

    return Settings(
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/portal.db"),
        STORAGE_PREFIX=os.getenv("STORAGE_PREFIX", "wmhi_"),
        TIMEZONE=os.getenv("TIMEZONE", "Europe/London"),
        COMPANY_NAME=os.getenv("COMPANY_NAME", "West Midlands Home Improvements"),
        COMPANY_SIGNOFF=os.getenv("COMPANY_SIGNOFF", "The WMHI Team"),
    )


def local_now() -> datetime:
    """Current time in the configured timezone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def local_today() -> date:
    """Today's calendar date in the configured timezone."""
    return local_now().date()


# Singleton — imported by all other modules as:
#   from siteportal.config import settings
settings = _load_settings()
