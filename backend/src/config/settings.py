"""Process configuration loaded from the environment (and ``.env``)."""

from __future__ import annotations

import base64
import binascii
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

from core.errors import ConfigurationError

ENCRYPTION_KEY_ENV = "ENCRYPTION_MASTER_KEY"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_GITHUB_API_URL = "https://api.github.com"


def decode_master_key(encoded: Optional[str]) -> bytes:
    """Decode the base64 master key and check it is 256-bit."""
    if not encoded:
        raise ConfigurationError(
            f"{ENCRYPTION_KEY_ENV} is required and must be base64 encoded."
        )
    try:
        key = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationError(f"Failed to decode {ENCRYPTION_KEY_ENV}: {exc}") from exc
    if len(key) != 32:
        raise ConfigurationError("Encryption key must be 32 bytes (256-bit).")
    return key


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    encryption_key: bytes = field(repr=False)
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = field(default=None, repr=False)
    openai_model: str = DEFAULT_OPENAI_MODEL
    github_api_url: str = DEFAULT_GITHUB_API_URL
    api_rate_limit_per_minute: int = 60
    analysis_rate_limit_per_minute: int = 5
    cors_allow_origins: Tuple[str, ...] = ("*",)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
        return cls(
            encryption_key=decode_master_key(os.getenv(ENCRYPTION_KEY_ENV)),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=(
                os.getenv("SUPABASE_SERVICE_ROLE_KEY")
                or os.getenv("SUPABASE_KEY")
                or os.getenv("SUPABASE_ANON_KEY")
            ),
            openai_model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            github_api_url=os.getenv("GITHUB_API_URL", DEFAULT_GITHUB_API_URL).rstrip("/"),
            api_rate_limit_per_minute=_int_env("API_RATE_LIMIT_PER_MINUTE", 60),
            analysis_rate_limit_per_minute=_int_env("ANALYSIS_RATE_LIMIT_PER_MINUTE", 5),
            cors_allow_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) or ("*",),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    return Settings.from_env()
