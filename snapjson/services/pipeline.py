"""
Two-stage OCR pipeline: image → raw markdown → structured JSON.

One OCRPipeline per user holds the captured image, the last result and the
processing flag. States:

  IDLE        no image
  READY       image captured, nothing in flight
  PROCESSING  remote calls in flight
"""

import json
import logging
from typing import Protocol

from ..exceptions import MalformedResponse, SnapJsonError
from ..models import CapturedImage, OCRResult, PipelineState
from .vision import to_data_url

log = logging.getLogger(__name__)


class OCRClient(Protocol):
    async def extract_text(self, image_data_url: str) -> str: ...

    async def structure_text(self, raw_text: str) -> str: ...


class OCRPipeline:
    def __init__(self, client: OCRClient):
        self.client = client
        self.image: CapturedImage | None = None
        self.result: OCRResult | None = None
        self.processing = False
        # bumped on every capture/reset so a stale run can't land on a new image
        self._generation = 0

    @property
    def state(self) -> PipelineState:
        if self.processing:
            return PipelineState.PROCESSING
        if self.image is None:
            return PipelineState.IDLE
        return PipelineState.READY

    @property
    def can_process(self) -> bool:
        return bool(self.image and self.image.base64) and not self.processing

    def capture(self, image: CapturedImage) -> None:
        """Replace the current image; any previous result is dropped."""
        self._generation += 1
        self.image = image
        self.result = None

    def reset(self) -> None:
        self._generation += 1
        self.image = None
        self.result = None

    async def process(self) -> OCRResult | None:
        """
        Run both stages on the current image.

        Returns the new OCRResult, or None when nothing was run (no image,
        no base64 payload, or a run already in flight) and when the image
        was replaced or reset before the run finished.
        """
        if self.processing:
            log.info("process() ignored: already processing")
            return None
        if not self.image or not self.image.base64:
            log.debug("process() ignored: no image payload")
            return None

        generation = self._generation
        self.processing = True
        try:
            result = await self._run(self.image)
        finally:
            self.processing = False

        if generation != self._generation:
            log.info("Discarding OCR result for an image that was replaced mid-run")
            return None
        self.result = result
        return result

    async def _run(self, image: CapturedImage) -> OCRResult:
        try:
            raw = await self.client.extract_text(to_data_url(image.base64))
            structured_text = await self.client.structure_text(raw)
            try:
                structured = json.loads(structured_text)
            except json.JSONDecodeError as e:
                raise MalformedResponse(f"structured output is not valid JSON: {e}") from e
        except (SnapJsonError, ValueError) as e:
            log.warning("OCR pipeline failed: %s", e)
            return OCRResult(error=f"Failed to process image: {e}")

        log.info("OCR pipeline OK: %d chars of text", len(raw))
        return OCRResult(raw=raw, structured=structured)


class PipelineRegistry:
    """In-memory map of Telegram user id → OCRPipeline."""

    def __init__(self, client: OCRClient):
        self.client = client
        self._pipelines: dict[int, OCRPipeline] = {}

    def get(self, user_id: int) -> OCRPipeline:
        p = self._pipelines.get(user_id)
        if p is None:
            p = self._pipelines[user_id] = OCRPipeline(self.client)
        return p

    def drop(self, user_id: int) -> None:
        self._pipelines.pop(user_id, None)
