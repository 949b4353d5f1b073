"""
Runtime settings

Values come from environment variables, optionally loaded from a .env file.
Malformed numeric values fall back to their defaults with a warning.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_EXTRACTION_MODEL = "claude-3-haiku-20240307"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:8000"


@dataclass(frozen=True)
class Settings:
    anthropic_api_key: Optional[str] = None
    extraction_model: str = DEFAULT_EXTRACTION_MODEL
    ai_timeout_seconds: float = 5.0
    ai_max_tokens: int = 2000
    enable_ai_extraction: bool = True
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: DEFAULT_CORS_ORIGINS.split(","))

    @property
    def ai_available(self) -> bool:
        return self.enable_ai_extraction and bool(self.anthropic_api_key)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, using default {default}")
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, using default {default}")
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_settings() -> Settings:
    """Load settings from the environment (and .env, when present)"""
    load_dotenv()

    api_key = os.getenv("ANTHROPIC_API_KEY") or None
    cors_origins_str = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)

    return Settings(
        anthropic_api_key=api_key,
        extraction_model=os.getenv("EXTRACTION_MODEL", DEFAULT_EXTRACTION_MODEL),
        ai_timeout_seconds=_env_float("AI_TIMEOUT_SECONDS", 5.0),
        ai_max_tokens=_env_int("AI_MAX_TOKENS", 2000),
        enable_ai_extraction=_env_bool("ENABLE_AI_EXTRACTION", True),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=[origin.strip() for origin in cors_origins_str.split(",") if origin.strip()],
    )
