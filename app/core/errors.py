from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException


class AnalysisError(Exception):
    """分析流程中可預期的錯誤；status_code 與 message 直接對應到回應。"""

    status_code: int = 500
    message: str = "Failed to analyze image"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissingImageError(AnalysisError):
    status_code = 400
    message = "No image provided"


class InvalidImageError(AnalysisError):
    status_code = 400
    message = "Invalid image format"


class ImageTooLargeError(AnalysisError):
    status_code = 400
    message = "Image too large"


class EmptyModelResponseError(AnalysisError):
    status_code = 500
    message = "No response from model"


class ModelOutputParseError(AnalysisError):
    status_code = 500
    message = "Failed to analyze image"


def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    # 統一輸出格式：{"error": "..."}
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AnalysisError)
    async def analysis_exc_handler(request: Request, exc: AnalysisError):
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        # 不回傳驗證細節，只保留一句話
        logger.info("Rejected request body: {}", exc.errors())
        return error_response(400, "Invalid request body")

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        # 小強化：避免洩露伺服器細節
        resp = await call_next(request)
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        return resp
