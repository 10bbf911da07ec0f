from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


PROVIDERS = ("openai", "stub")


class ConfigError(RuntimeError):
    pass


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _api_key() -> Optional[str]:
    return _env("OPENAI_API_KEY") or _env("API_KEY") or None


class Settings(BaseModel):
    openai_api_key: Optional[str] = Field(default_factory=_api_key)
    asr_provider: str = Field(default_factory=lambda: _env("ASR_PROVIDER", "openai").lower())
    asr_model: str = Field(default_factory=lambda: _env("ASR_MODEL", "whisper-1"))
    asr_timeout_s: float = Field(default_factory=lambda: float(_env("ASR_TIMEOUT_S", "60")))
    upload_dir: str = Field(default_factory=lambda: _env("UPLOAD_DIR", "uploads"))
    host: str = Field(default_factory=lambda: _env("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(_env("PORT", "8080")))
    log_level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))


def validate_settings(settings: Settings) -> Settings:
    if settings.asr_provider not in PROVIDERS:
        raise ConfigError(f"ASR_PROVIDER must be one of {', '.join(PROVIDERS)}, got {settings.asr_provider!r}")
    if settings.asr_timeout_s <= 0:
        raise ConfigError("ASR_TIMEOUT_S must be > 0")
    if settings.asr_provider == "openai" and not settings.openai_api_key:
        raise ConfigError("OPENAI_API_KEY must be set in .env")
    return settings


def load_settings(env_file: str = ".env") -> Settings:
    """Read ``env_file`` into the environment and build validated settings.

    The file must exist; a deployment without it is treated as misconfigured.
    Variables already present in the environment win over the file.
    """
    if not os.path.isfile(env_file):
        raise ConfigError(f"error while reading {env_file} file")
    load_dotenv(env_file, override=False)
    try:
        settings = Settings()
    except ValueError as e:
        raise ConfigError(f"invalid configuration: {e}") from e
    return validate_settings(settings)
