# app/services/gemini.py
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from google import genai
from google.genai import types
from loguru import logger

from app.core.config import settings


class GeminiClient:
    """
    Gemini 多模態呼叫的薄包裝。
    - 第一次呼叫時才建立 genai.Client（缺 API key 時錯誤會落在請求內，而不是啟動時）
    - 只回傳模型的純文字輸出；解析交給 analyzer
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self._client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str, image: bytes, mime_type: str) -> Optional[str]:
        client = self._get_client()
        response = await client.aio.models.generate_content(
            model=self.model,
            contents=[
                prompt,
                types.Part.from_bytes(data=image, mime_type=mime_type),
            ],
        )
        text = getattr(response, "text", None)
        logger.debug("Gemini call done", model=self.model, chars=len(text or ""))
        return text


@lru_cache
def get_gemini_client() -> GeminiClient:
    """FastAPI 依賴：整個 process 共用一個 client；測試用 dependency_overrides 換掉。"""
    return GeminiClient()
