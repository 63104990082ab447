# app/core/config.py
from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated, Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    # === App Info ===
    APP_NAME: str = "Question Photo Checker"
    API_PREFIX: str = "/api"
    ENV: str = os.getenv("ENV", "dev")
    DEBUG: bool = False
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # === CORS ===
    # NoDecode：交給 _parse_cors 處理，不讓 pydantic-settings 先當 JSON 解
    CORS_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                import json
                return [x.strip() for x in json.loads(s)]
            return [x.strip() for x in s.split(",") if x.strip()]
        if isinstance(v, list):
            return [str(x).strip() for x in v if str(x).strip()]
        return v

    # === Gemini（多模態模型） ===
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    # 與前端相同的上限：10MB
    MAX_IMAGE_BYTES: int = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))

    # === Rate limit / Redis ===
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RATE_LIMIT_WINDOW_SEC: int = int(os.getenv("RATE_LIMIT_WINDOW_SEC", "600"))
    RATE_LIMIT_MAX_PER_IP: int = int(os.getenv("RATE_LIMIT_MAX_PER_IP", "60"))

    # 單人使用情境預設關閉；偵測到 pytest 時一律關閉。
    RATE_LIMIT_ENABLED: bool = (
        (os.getenv("PYTEST_CURRENT_TEST") is None)
        and os.getenv("RATE_LIMIT_ENABLED", "0").lower() not in ("0", "false", "no")
    )

    # === Observability（Sentry / Monitoring） ===
    SENTRY_DSN: Optional[str] = os.getenv("SENTRY_DSN")
    SENTRY_ENV: str = os.getenv("SENTRY_ENV", "dev")
    SENTRY_TRACES_SAMPLE_RATE: float = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """測試環境自動停用限流"""
    s = Settings()
    if s.ENV == "test":
        s.RATE_LIMIT_ENABLED = False
    return s


settings = get_settings()
