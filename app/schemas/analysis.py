from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class AnalyzeRequest(BaseModel):
    # 允許缺少 image，由路由自己回 "No image provided"
    image: Optional[str] = Field(None, description="data URL：data:<mime>;base64,<payload>")


class AnalysisResult(BaseModel):
    isQuestion: bool
    confidence: float = Field(..., ge=0, le=1)
    explanation: str
    detectedText: Optional[str] = None
    answer: str = ""

    # 模型偶爾會多給欄位，保留下來不報錯
    model_config = ConfigDict(extra="allow")


class ErrorResponse(BaseModel):
    error: str
