from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _normalise_prefix(raw_prefix: str) -> str:
    raw_prefix = raw_prefix.strip()
    if not raw_prefix or raw_prefix == "/":
        return ""
    if not raw_prefix.startswith("/"):
        raw_prefix = f"/{raw_prefix}"
    return raw_prefix.rstrip("/")


def _split_keys(raw: str) -> tuple[str, ...]:
    return tuple(key.strip() for key in raw.split(",") if key.strip())


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change_me")
    URL_PREFIX: str = _normalise_prefix(os.getenv("URL_PREFIX", ""))
    API_TITLE: str = os.getenv("API_TITLE", "Session Planner API")
    API_VERSION: str = os.getenv("API_VERSION", "0.1.0")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    DEFAULT_GROUPING_KEYS: tuple[str, ...] = _split_keys(
        os.getenv("DEFAULT_GROUPING_KEYS", "training_location")
    )
    DEFAULT_FUNCTIONAL_AREA: str = os.getenv("DEFAULT_FUNCTIONAL_AREA", "General")
    TESTING: bool = False


@dataclass
class TestConfig(Config):
    TESTING: bool = True
    LOG_LEVEL: str = "WARNING"


config = Config()
