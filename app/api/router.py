# app/api/router.py
from fastapi import APIRouter

from .endpoints import analyze, health

# === API 主路由（掛在 settings.API_PREFIX 底下） ===
api_router = APIRouter()

# 題目偵測：POST /api/analyze
api_router.include_router(analyze.router, tags=["analyze"])

# 系統健康檢查
api_router.include_router(health.router, prefix="/health", tags=["health"])
