# app/client/session.py
"""
拍照 / 上傳端的狀態機：

    IDLE -> ANALYZING -> RESULT | ERROR -> (reset) IDLE

同一時間只會顯示 analyzing / error / result 其中一種。
新的 submit 會先清掉上一次的結果與錯誤，但不取消已送出的請求。
"""

from __future__ import annotations

import enum
from typing import Optional

from loguru import logger

from app.client.http import AnalyzeClient, AnalyzeClientError
from app.schemas.analysis import AnalysisResult

ANALYZE_FAILED = "Failed to analyze image. Please try again."
CAPTURE_FAILED = "Failed to capture photo. Please try again."
CAMERA_FAILED = "Camera access failed. Please check permissions and try again, or use the upload option."
ANALYZING_TEXT = "Analyzing image..."


class CameraError(Exception):
    """相機權限被拒、被占用或找不到；由相機實作丟出。"""


class SessionState(str, enum.Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    RESULT = "result"
    ERROR = "error"


class CaptureSession:
    def __init__(self, client: AnalyzeClient):
        self.client = client
        self.state = SessionState.IDLE
        self.image: Optional[str] = None
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[str] = None

    def _clear(self) -> None:
        self.result = None
        self.error = None

    async def submit(self, data_url: Optional[str]) -> SessionState:
        if not data_url:
            return self.fail(CAPTURE_FAILED)

        self.image = data_url
        self._clear()
        self.state = SessionState.ANALYZING
        try:
            self.result = await self.client.analyze(data_url)
            self.state = SessionState.RESULT
        except AnalyzeClientError as e:
            logger.error("Analysis error: {}", e)
            self.error = ANALYZE_FAILED
            self.state = SessionState.ERROR
        return self.state

    def fail(self, message: str) -> SessionState:
        """輸入或裝置錯誤：直接進 ERROR，不送請求。"""
        self._clear()
        self.error = message
        self.state = SessionState.ERROR
        return self.state

    def camera_failed(self, exc: CameraError) -> SessionState:
        logger.error("Webcam error: {}", exc)
        return self.fail(CAMERA_FAILED)

    def reset(self) -> SessionState:
        self.image = None
        self._clear()
        self.state = SessionState.IDLE
        return self.state


def render(session: CaptureSession) -> str:
    if session.state is SessionState.ANALYZING:
        return ANALYZING_TEXT
    if session.state is SessionState.ERROR:
        return f"Error: {session.error}"
    if session.state is not SessionState.RESULT or session.result is None:
        return ""

    r = session.result
    headline = "Question Detected!" if r.isQuestion else "No Question Found"
    lines = [
        f"{headline} ({round(r.confidence * 100)}% confident)",
        r.explanation,
    ]
    if r.answer:
        lines += ["", "Answer:", r.answer]
    if r.detectedText:
        lines += ["", "Detected Text:", r.detectedText]
    return "\n".join(lines)
