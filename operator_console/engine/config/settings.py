from __future__ import annotations

import functools
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App / env
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    request_id_header: str = Field("x-request-id", alias="REQUEST_ID_HEADER")

    # Chat backend
    api_base_url: str = Field("http://localhost:5000", alias="CONSOLE_API_BASE_URL")
    api_token: Optional[str] = Field(None, alias="CONSOLE_API_TOKEN")
    chat_messages_path: str = Field("/api/chat/messages", alias="CHAT_MESSAGES_PATH")
    chat_sessions_path: str = Field("/api/chat/sessions", alias="CHAT_SESSIONS_PATH")

    # Streaming
    frame_prefix: str = Field("data:", alias="FRAME_PREFIX")
    connect_timeout_seconds: float = Field(10.0, alias="CONNECT_TIMEOUT_SECONDS")
    read_timeout_seconds: float = Field(0.0, alias="READ_TIMEOUT_SECONDS")
    turn_timeout_ms: int = Field(0, alias="TURN_TIMEOUT_MS")

    # Caps
    max_user_text_chars: int = Field(8000, alias="MAX_USER_TEXT_CHARS")
    max_accumulator_chars: int = Field(1024 * 1024, alias="MAX_ACCUMULATOR_CHARS")

    @field_validator("connect_timeout_seconds", "read_timeout_seconds")
    @classmethod
    def clamp_timeout(cls, v: float) -> float:
        return v if v > 0 else 0.0

    @field_validator("turn_timeout_ms", "max_user_text_chars", "max_accumulator_chars")
    @classmethod
    def clamp_non_negative(cls, v: int) -> int:
        return max(0, v)

    @field_validator("frame_prefix")
    @classmethod
    def require_prefix(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("FRAME_PREFIX must not be empty")
        return v.strip()

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return (v or "").rstrip("/")

    @field_validator("app_env")
    @classmethod
    def normalize_env(cls, v: str) -> str:
        return (v or "dev").lower()

    @property
    def connect_timeout(self) -> Optional[float]:
        return self.connect_timeout_seconds or None

    @property
    def read_timeout(self) -> Optional[float]:
        return self.read_timeout_seconds or None

    @property
    def turn_timeout(self) -> Optional[int]:
        return self.turn_timeout_ms or None


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def settings_public_summary(settings: Optional[Settings] = None) -> Dict[str, Any]:
    s = settings or get_settings()
    return {
        "env": s.app_env,
        "api_base_url": s.api_base_url,
        "has_api_token": bool(s.api_token),
        "chat_messages_path": s.chat_messages_path,
        "chat_sessions_path": s.chat_sessions_path,
        "frame_prefix": s.frame_prefix,
        "connect_timeout_seconds": s.connect_timeout_seconds,
        "read_timeout_seconds": s.read_timeout_seconds,
        "turn_timeout_ms": s.turn_timeout_ms,
        "max_accumulator_chars": s.max_accumulator_chars,
    }


__all__ = ["Settings", "get_settings", "settings_public_summary"]
