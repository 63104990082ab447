# app/client/http.py
from __future__ import annotations

from typing import Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from app.schemas.analysis import AnalysisResult

DEFAULT_BASE_URL = "http://localhost:8000"
ANALYZE_PATH = "/api/analyze"


class AnalyzeClientError(Exception):
    """呼叫 /api/analyze 失敗：連線、非 2xx、或回應不是 AnalysisResult。"""


class AnalyzeClient:
    """
    POST {"image": data_url} 到分析端點。
    timeout=None：上游卡住時就一直停在 analyzing，不自行逾時。
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def analyze(self, data_url: str) -> AnalysisResult:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, transport=self._transport, timeout=None
            ) as client:
                resp = await client.post(ANALYZE_PATH, json={"image": data_url})
        except httpx.HTTPError as e:
            logger.error("API call failed: {}", e)
            raise AnalyzeClientError("Failed to analyze image") from e

        if resp.is_error:
            logger.error("API call failed: HTTP {}: {}", resp.status_code, resp.text)
            raise AnalyzeClientError(f"HTTP {resp.status_code}: {resp.text}")

        try:
            return AnalysisResult.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            logger.error("Unexpected analysis payload: {}", e)
            raise AnalyzeClientError("Failed to analyze image") from e
