# app/main.py
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.errors import register_error_handlers
from app.api.router import api_router
from app.services.rate_limit import close_redis

# Monitoring
import sentry_sdk
from prometheus_fastapi_instrumentator import Instrumentator

logger = setup_logging(settings.LOG_LEVEL)


def _validate_secrets() -> None:
    """
    部署前檢查：在 prod/staging/preview 等環境時，必須設定 GEMINI_API_KEY。
    """
    env = (settings.ENV or "").lower()
    if env in {"prod", "production", "staging", "preview"}:
        if not settings.GEMINI_API_KEY:
            raise RuntimeError(
                f"Missing GEMINI_API_KEY in ENV={settings.ENV}. "
                "Please set it via environment variables."
            )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("Using model {}", settings.GEMINI_MODEL)
    try:
        yield
    finally:
        # 有啟用限流才會真的建立 Redis 連線
        await close_redis()


def create_app() -> FastAPI:
    _validate_secrets()

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Sentry 初始化（未設定 SENTRY_DSN 就略過）----
    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            environment=settings.SENTRY_ENV,
        )

    # ---- Prometheus /metrics ----
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    # 統一錯誤處理（{"error": ...}）
    register_error_handlers(app)

    # === API 路由：/api/analyze、/api/health ===
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/", summary="Root")
    async def root():
        return {"app": settings.APP_NAME, "env": settings.ENV}

    @app.get("/healthz", tags=["ops"])
    async def healthz():
        return {"ok": True}

    @app.get("/readyz", tags=["ops"])
    async def readyz():
        return {"ready": True}

    logger.info("Application initialized (env={})", settings.ENV)
    return app


# Uvicorn 進入點
app = create_app()
