# tests/test_analyze_endpoint.py
import base64

import httpx
import pytest
from httpx import AsyncClient

from app.services.analyzer import PROMPT

pytestmark = pytest.mark.anyio

VALID_IMAGE = "data:image/jpeg;base64,AAAA"
EXPECTED = {"isQuestion": True, "confidence": 0.9, "explanation": "math problem", "answer": "4"}


async def test_analyze_returns_model_json_verbatim(client: AsyncClient, fake_model):
    r = await client.post("/api/analyze", json={"image": VALID_IMAGE})
    assert r.status_code == 200, r.text
    # 原封不動：沒有多出 detectedText: null 之類的欄位
    assert r.json() == EXPECTED

    assert len(fake_model.calls) == 1
    call = fake_model.calls[0]
    assert call["prompt"] == PROMPT
    assert call["image"] == b"\x00\x00\x00"
    assert call["mime_type"] == "image/jpeg"


async def test_missing_image_is_client_error(client: AsyncClient, fake_model):
    r = await client.post("/api/analyze", json={})
    assert r.status_code == 400
    assert r.json() == {"error": "No image provided"}
    assert fake_model.calls == []


async def test_empty_image_string_is_missing(client: AsyncClient, fake_model):
    r = await client.post("/api/analyze", json={"image": ""})
    assert r.status_code == 400
    assert r.json() == {"error": "No image provided"}


@pytest.mark.parametrize(
    "image",
    [
        "data:image/png;base64AAAA",  # 沒有逗號
        "data:image/png;base64,",  # 逗號後是空的
        "data:image/png;base64,   ",
        "data:image/png;base64,not base64!!",
    ],
)
async def test_malformed_image_never_forwarded(client: AsyncClient, fake_model, image):
    r = await client.post("/api/analyze", json={"image": image})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid image format"}
    assert fake_model.calls == []


async def test_non_string_image_is_invalid_body(client: AsyncClient, fake_model):
    r = await client.post("/api/analyze", json={"image": 123})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid request body"}


async def test_non_json_body_is_invalid_body(client: AsyncClient, fake_model):
    r = await client.post(
        "/api/analyze", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert r.status_code == 400
    assert "error" in r.json()
    assert fake_model.calls == []


async def test_mime_type_forwarded_from_header(client: AsyncClient, fake_model):
    img = "data:image/png;base64," + base64.b64encode(b"\x89PNG\r\n\x1a\n").decode()
    r = await client.post("/api/analyze", json={"image": img})
    assert r.status_code == 200
    assert fake_model.calls[0]["mime_type"] == "image/png"
    assert fake_model.calls[0]["image"] == b"\x89PNG\r\n\x1a\n"


async def test_unmatched_header_defaults_to_jpeg(client: AsyncClient, fake_model):
    r = await client.post("/api/analyze", json={"image": "garbage,AAAA"})
    assert r.status_code == 200
    assert fake_model.calls[0]["mime_type"] == "image/jpeg"


async def test_fenced_reply_parses_like_raw(client: AsyncClient, fake_model):
    raw = fake_model.reply
    fake_model.reply = f"```json\n{raw}\n```"
    r = await client.post("/api/analyze", json={"image": VALID_IMAGE})
    assert r.status_code == 200
    assert r.json() == EXPECTED


@pytest.mark.parametrize("reply", [None, "", "   \n"])
async def test_empty_model_reply_is_server_error(client: AsyncClient, fake_model, reply):
    fake_model.reply = reply
    r = await client.post("/api/analyze", json={"image": VALID_IMAGE})
    assert r.status_code == 500
    assert r.json() == {"error": "No response from model"}


@pytest.mark.parametrize(
    "reply",
    [
        "Sure! Here is the answer: 4",
        "```json\n{\"isQuestion\": true,\n```",
        "[1, 2, 3]",
    ],
)
async def test_unparseable_reply_is_server_error(client: AsyncClient, fake_model, reply):
    fake_model.reply = reply
    r = await client.post("/api/analyze", json={"image": VALID_IMAGE})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to analyze image"}
    # 不重試
    assert len(fake_model.calls) == 1


async def test_upstream_exception_is_server_error(client: AsyncClient, fake_model):
    fake_model.exc = httpx.ConnectError("upstream down")
    r = await client.post("/api/analyze", json={"image": VALID_IMAGE})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to analyze image"}


async def test_oversized_image_rejected(client: AsyncClient, fake_model, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "MAX_IMAGE_BYTES", 2, raising=True)
    r = await client.post("/api/analyze", json={"image": VALID_IMAGE})
    assert r.status_code == 400
    assert r.json() == {"error": "Image too large"}
    assert fake_model.calls == []


async def test_rate_limited_via_monkeypatch(client: AsyncClient, fake_model, monkeypatch):
    # patch 到路由實際引用的位置；路由端以 await 呼叫 -> 假函式必須是 async
    async def _deny(*args, **kwargs):
        return False, 60

    monkeypatch.setattr("app.api.endpoints.analyze.check_limit_and_hit", _deny, raising=True)

    r = await client.post("/api/analyze", json={"image": VALID_IMAGE})
    assert r.status_code == 429
    assert r.json() == {"error": "Too many requests"}
    assert r.headers.get("Retry-After") == "60"
    assert fake_model.calls == []


async def test_line_wrapped_and_unpadded_payloads_accepted(client: AsyncClient, fake_model):
    raw = b"\xff\xd8\xff" * 40
    wrapped = "data:image/jpeg;base64," + base64.encodebytes(raw).decode()
    r = await client.post("/api/analyze", json={"image": wrapped})
    assert r.status_code == 200, r.text
    assert fake_model.calls[-1]["image"] == raw

    r = await client.post("/api/analyze", json={"image": "data:image/jpeg;base64,AAA"})
    assert r.status_code == 200, r.text
    assert fake_model.calls[-1]["image"] == b"\x00\x00"


async def test_upstream_exception_logged_once(client: AsyncClient, fake_model):
    from loguru import logger

    records = []
    sink_id = logger.add(lambda m: records.append(m.record), level="ERROR")
    try:
        fake_model.exc = RuntimeError("boom")
        r = await client.post("/api/analyze", json={"image": VALID_IMAGE})
    finally:
        logger.remove(sink_id)

    assert r.status_code == 500
    assert len(records) == 1
    assert records[0]["exception"] is not None
