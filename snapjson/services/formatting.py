"""
Result rendering for chat messages.

Example:
"OCR Results:

Structured Data:
{
  "title": "Title"
}"
"""

import json

from ..models import CapturedImage, OCRResult

# Telegram rejects longer messages
MAX_MESSAGE_LEN = 4096


def format_capture(image: CapturedImage) -> str:
    return f"📷 Got a {image.width}x{image.height} image. Tap “Process with OCR” when ready."


def format_result(result: OCRResult) -> str:
    if result.error:
        return "OCR Results:\n\n" + result.error
    pretty = json.dumps(result.structured, indent=2, ensure_ascii=False)
    return "OCR Results:\n\nStructured Data:\n" + pretty


def split_message(text: str, limit: int = MAX_MESSAGE_LEN) -> list[str]:
    """Split on line breaks where possible so each chunk fits in one message."""
    if len(text) <= limit:
        return [text]
    chunks = []
    rest = text
    while len(rest) > limit:
        cut = rest.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(rest[:cut])
        rest = rest[cut:].lstrip("\n")
    if rest:
        chunks.append(rest)
    return chunks
