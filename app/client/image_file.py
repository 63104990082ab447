# app/client/image_file.py
from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Optional, Union

MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB


class ImageFileError(Exception):
    """上傳前的檢查失敗（非圖片、太大、讀不到）。"""


def to_data_url(data: bytes, mime_type: str) -> str:
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def guess_image_type(path: Union[str, Path]) -> Optional[str]:
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type


def load_image_file(path: Union[str, Path], max_bytes: int = MAX_UPLOAD_BYTES) -> str:
    """讀取本機圖片並轉成 data URL；先檢查型別再檢查大小，與網頁版順序一致。"""
    p = Path(path)
    mime_type = guess_image_type(p)
    if not mime_type or not mime_type.startswith("image/"):
        raise ImageFileError("Please select an image file")

    try:
        size = p.stat().st_size
        if size > max_bytes:
            raise ImageFileError("Image too large. Please select an image under 10MB.")
        data = p.read_bytes()
    except OSError as e:
        raise ImageFileError("Failed to read image file") from e

    return to_data_url(data, mime_type)
