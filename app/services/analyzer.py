# app/services/analyzer.py
"""
題目偵測的核心流程（與 HTTP 無關，方便單測）：
- parse_data_url(data_url)   -> ImagePayload（mime_type + 原始 bytes）
- strip_code_fences(text)    -> 去掉模型常加的 ```json ... ``` 包裝
- parse_model_reply(text)    -> dict（嚴格 JSON，必須是 object）
- analyze_image(data_url, model_client) -> dict

失敗一律丟 app.core.errors 內的 AnalysisError 子類別，由路由 / error handler 轉成 {"error": ...}。
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from loguru import logger

from app.core.config import settings
from app.core.errors import (
    EmptyModelResponseError,
    ImageTooLargeError,
    InvalidImageError,
    MissingImageError,
    ModelOutputParseError,
)

DEFAULT_MIME_TYPE = "image/jpeg"

_MIME_RE = re.compile(r"data:(.*?);base64")
_FENCE_OPEN_RE = re.compile(r"^```(?:json)?", re.IGNORECASE)
_FENCE = "```"

PROMPT = """
Analyze the following image and determine if it contains a question or a task asking for a response. Look for:

- Direct questions (sentences ending with question marks "?").
- Indirect questions or instructions that ask the user to complete something (for example, "Fill in the blank", "Choose the correct answer", "Complete the sentence", "Solve this", etc.).
- Multiple choice questions, fill-in-the-blank exercises, or instructions asking the reader to respond.
- Question words: what, where, when, why, how, who, which, etc.
- Mathematical problems asking for solutions.
- Any context where a response, choice, or action is required from the user.

Even if the sentence is an instruction, if it **asks the reader to provide an answer**, mark it as a question.
If a question is found, answer it in "answer". If no question is found, "answer" must be an empty string.

Respond in JSON format:
{
  "isQuestion": boolean,
  "confidence": number (from 0 to 1),
  "explanation": string,
  "detectedText": string (optional),
  "answer": string
}
""".strip()


class ModelClient(Protocol):
    async def generate(self, prompt: str, image: bytes, mime_type: str) -> Optional[str]:
        ...


@dataclass(frozen=True)
class ImagePayload:
    mime_type: str
    data: bytes


def parse_data_url(data_url: Optional[str], max_bytes: Optional[int] = None) -> ImagePayload:
    """拆 data URL：逗號前是 header（取 MIME），逗號後是 base64 本體。"""
    if not data_url:
        raise MissingImageError()

    header, sep, payload = data_url.partition(",")
    # 允許 RFC 2045 換行與缺少 padding 的 base64
    payload = "".join(payload.split())
    if not sep or not payload:
        raise InvalidImageError()

    match = _MIME_RE.search(header)
    mime_type = match.group(1) if match and match.group(1) else DEFAULT_MIME_TYPE

    payload += "=" * (-len(payload) % 4)
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImageError()
    if not data:
        raise InvalidImageError()

    limit = settings.MAX_IMAGE_BYTES if max_bytes is None else max_bytes
    if limit and len(data) > limit:
        raise ImageTooLargeError()

    return ImagePayload(mime_type=mime_type, data=data)


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith(_FENCE):
        text = _FENCE_OPEN_RE.sub("", text, count=1).strip()
    if text.endswith(_FENCE):
        text = text[: text.rfind(_FENCE)].strip()
    return text


def parse_model_reply(raw: Optional[str]) -> Dict[str, Any]:
    if not raw or not raw.strip():
        logger.error("Empty response from model")
        raise EmptyModelResponseError()

    text = strip_code_fences(raw)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse cleaned response: {}", e)
        raise ModelOutputParseError()

    if not isinstance(parsed, dict):
        logger.error("Model returned JSON {} instead of an object", type(parsed).__name__)
        raise ModelOutputParseError()
    return parsed


async def analyze_image(data_url: Optional[str], model_client: ModelClient) -> Dict[str, Any]:
    """驗證 → 呼叫模型 → 去 fence → 解析；不重試。"""
    image = parse_data_url(data_url)

    raw = await model_client.generate(PROMPT, image.data, image.mime_type)
    logger.info("Raw model response: {}", raw)

    return parse_model_reply(raw)
