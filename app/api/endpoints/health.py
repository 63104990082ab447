from fastapi import APIRouter

from app.core.config import settings

router = APIRouter()

@router.get("/", summary="Health check")
async def health_root():
    # 只回報設定狀態，不實際打 Gemini
    return {
        "status": "ok",
        "model": settings.GEMINI_MODEL,
        "model_configured": bool(settings.GEMINI_API_KEY),
    }
