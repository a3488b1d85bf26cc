"""
Typed models used across services.
"""

from enum import Enum

from pydantic import BaseModel, JsonValue, model_validator


class CapturedImage(BaseModel):
    """
    A photo from the camera or the gallery. `uri` is the Telegram file id.
    """
    uri: str
    width: int
    height: int
    base64: str | None = None


class OCRResult(BaseModel):
    """
    Outcome of one processing run: either raw + structured, or error.
    """
    raw: str | None = None
    structured: JsonValue = None
    error: str | None = None

    @model_validator(mode="after")
    def _error_excludes_data(self) -> "OCRResult":
        if self.error is not None and (self.raw is not None or self.structured is not None):
            raise ValueError("an OCR result carries either data or an error, not both")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None


class PipelineState(str, Enum):
    IDLE = "idle"
    READY = "ready"
    PROCESSING = "processing"


# ───────────────────────────── Remote envelope ───────────────────────────── #

class ChoiceMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None


class Choice(BaseModel):
    index: int = 0
    message: ChoiceMessage
    finish_reason: str | None = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class RemoteResponse(BaseModel):
    """
    Chat-completions response envelope. Only choices[0].message.content is read.
    """
    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str | None = None
    choices: list[Choice] = []
    usage: Usage | None = None
