# tests/conftest.py
import os
from typing import List, Optional

import pytest
from httpx import AsyncClient, ASGITransport

# ---- 測試期環境變數（先於 app 載入）----
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")
os.environ.setdefault("ENV", "test")

from app.main import app  # noqa: E402
from app.services.gemini import get_gemini_client  # noqa: E402


class FakeModelClient:
    """取代 GeminiClient：回傳固定文字或丟例外，並記錄每次呼叫。"""

    def __init__(self, reply: Optional[str] = None, exc: Optional[Exception] = None):
        self.reply = reply
        self.exc = exc
        self.calls: List[dict] = []

    async def generate(self, prompt: str, image: bytes, mime_type: str) -> Optional[str]:
        self.calls.append({"prompt": prompt, "image": image, "mime_type": mime_type})
        if self.exc is not None:
            raise self.exc
        return self.reply


@pytest.fixture(scope="session")
def anyio_backend():
    """讓 pytest 使用 asyncio event loop。"""
    return "asyncio"


@pytest.fixture
def fake_model():
    """每個測試一個新的假模型；預設回一個合法結果。"""
    fake = FakeModelClient(
        reply='{"isQuestion":true,"confidence":0.9,"explanation":"math problem","answer":"4"}'
    )
    app.dependency_overrides[get_gemini_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_gemini_client, None)


@pytest.fixture
async def client(fake_model):
    """使用 ASGITransport 直接掛載 app，不需啟動伺服器。"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
