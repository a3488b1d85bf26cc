"""
Mistral vision client: image → markdown OCR text, markdown → JSON text.

Talks to the OpenAI-compatible chat-completions endpoint through the openai SDK.
Plain request/response: SDK retries are switched off and the default timeout
is left alone.
"""

import asyncio
import base64
import binascii
import logging
import re

import openai
from openai import OpenAI
from openai.types.chat import ChatCompletion
from pydantic import ValidationError

from ..exceptions import MalformedResponse, RemoteAPIError
from ..models import RemoteResponse

log = logging.getLogger(__name__)

DEFAULT_MODEL = "pixtral-12b-latest"
DEFAULT_BASE_URL = "https://api.mistral.ai/v1"

EXTRACT_PROMPT = "Extract all text content from this image and format it as markdown."

STRUCTURE_PROMPT = (
    "This is image's OCR in markdown:\n\n{ocr_text}\n.\n"
    "Convert this into a sensible structured json response. "
    "The output should strictly be json with no extra commentary"
)

_DATA_URL = re.compile(r"^data:[\w.+-]+/[\w.+-]+;base64,(?P<payload>.*)$", re.S)


def to_data_url(b64: str) -> str:
    return f"data:image/jpeg;base64,{b64}"


def _check_data_url(url: str) -> None:
    m = _DATA_URL.match(url or "")
    if not m or not m.group("payload").strip():
        raise ValueError("expected a data URL with a non-empty base64 payload")
    try:
        base64.b64decode(m.group("payload"), validate=True)
    except binascii.Error as e:
        raise ValueError(f"data URL payload is not valid base64: {e}") from e


class MistralVisionClient:
    """Two request shapes against one chat-completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        http_client=None,
    ):
        self.client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
            http_client=http_client,
        )
        self.model = model or DEFAULT_MODEL

    async def extract_text(self, image_data_url: str) -> str:
        """Stage 1: OCR the image, returns markdown."""
        _check_data_url(image_data_url)
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._extract_text_sync, image_data_url)

    async def structure_text(self, raw_text: str) -> str:
        """
        Stage 2: ask for a JSON rendition of the OCR text.
        Returns the model's text as-is; parsing is up to the caller.
        """
        if not raw_text or not raw_text.strip():
            raise ValueError("nothing to structure: OCR text is empty")
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._structure_text_sync, raw_text)

    def _extract_text_sync(self, image_data_url: str) -> str:
        resp = self._complete(
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": image_data_url}},
                        {"type": "text", "text": EXTRACT_PROMPT},
                    ],
                }
            ],
            temperature=0,
        )
        return _first_content(resp)

    def _structure_text_sync(self, raw_text: str) -> str:
        resp = self._complete(
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": STRUCTURE_PROMPT.format(ocr_text=raw_text)},
                    ],
                }
            ],
            response_format={"type": "json_object"},
            temperature=0,
        )
        return _first_content(resp)

    def _complete(self, **kwargs) -> RemoteResponse:
        try:
            chat = self.client.chat.completions.create(model=self.model, **kwargs)
        except openai.APIStatusError as e:
            body = e.response.text if e.response is not None else str(e)
            log.warning("Vision request failed: HTTP %s", e.status_code)
            raise RemoteAPIError(e.status_code, body) from e
        except openai.APIConnectionError as e:
            log.warning("Vision request failed: %r", e)
            raise RemoteAPIError(None, str(e)) from e
        except openai.APIError as e:
            log.warning("Vision response unusable: %r", e)
            raise MalformedResponse(f"unusable API response: {e}") from e

        # non-JSON bodies (gateway HTML pages) come back from the SDK as plain str
        if not isinstance(chat, ChatCompletion):
            log.warning("Vision response is not a chat completion: %.200r", chat)
            raise MalformedResponse("API response is not a chat completion")
        try:
            resp = RemoteResponse.model_validate(chat.model_dump())
        except ValidationError as e:
            raise MalformedResponse(f"unexpected API response shape: {e}") from e
        if resp.usage is not None:
            log.debug(
                "Vision OK: id=%s model=%s tokens=%d",
                resp.id, resp.model, resp.usage.total_tokens,
            )
        return resp


def _first_content(resp: RemoteResponse) -> str:
    if not resp.choices:
        raise MalformedResponse("API response carried no choices")
    content = resp.choices[0].message.content
    if not isinstance(content, str):
        raise MalformedResponse("API response carried no message content")
    return content
