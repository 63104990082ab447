from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from app.core.errors import AnalysisError
from app.schemas.analysis import AnalysisResult, AnalyzeRequest, ErrorResponse
from app.services.analyzer import analyze_image
from app.services.gemini import GeminiClient, get_gemini_client
from app.services.rate_limit import check_limit_and_hit

router = APIRouter()


@router.post(
    "/analyze",
    summary="Detect and answer a question in a photo",
    responses={
        200: {"model": AnalysisResult},
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def analyze(
    payload: AnalyzeRequest,
    request: Request,
    model_client: GeminiClient = Depends(get_gemini_client),
):
    """
    - image：data URL（data:<mime>;base64,<payload>）
    - 成功時原封不動回傳模型的 JSON（不經 AnalysisResult 重新序列化）
    - 任何錯誤都是 {"error": "..."}，不重試
    """
    ip = (request.client.host if request.client else "unknown") or "unknown"
    allowed, retry_after = await check_limit_and_hit(ip)
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={"Retry-After": str(retry_after)},
        )

    try:
        result = await analyze_image(payload.image, model_client)
    except AnalysisError:
        raise
    except Exception:
        # 上游 / 傳輸層錯誤：記 log，回通用訊息
        logger.exception("Error analyzing image")
        raise AnalysisError()

    return JSONResponse(content=result)
