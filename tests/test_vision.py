import asyncio
import json

import httpx
import pytest

from snapjson.exceptions import MalformedResponse, RemoteAPIError
from snapjson.services.pipeline import OCRPipeline
from snapjson.models import CapturedImage
from snapjson.services.vision import MistralVisionClient, to_data_url

DATA_URL = "data:image/jpeg;base64,aGVsbG8="


def _completion(content):
    return {
        "id": "cmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "pixtral-12b-latest",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def _client(handler):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return MistralVisionClient(api_key="test-key", base_url="https://api.mistral.ai/v1", http_client=http)


def _recording(responses):
    """Handler returning queued responses and keeping the requests it saw."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return responses.pop(0)

    return handler, seen


def test_to_data_url():
    assert to_data_url("QUJD") == "data:image/jpeg;base64,QUJD"


def test_extract_text_request_shape():
    handler, seen = _recording([httpx.Response(200, json=_completion("# Title\nBody"))])
    text = asyncio.run(_client(handler).extract_text(DATA_URL))

    assert text == "# Title\nBody"
    req = seen[0]
    assert req.method == "POST"
    assert req.url.path == "/v1/chat/completions"
    assert req.headers["authorization"] == "Bearer test-key"
    body = json.loads(req.content)
    assert body["model"] == "pixtral-12b-latest"
    assert body["temperature"] == 0
    assert "response_format" not in body
    parts = body["messages"][0]["content"]
    assert parts[0] == {"type": "image_url", "image_url": {"url": DATA_URL}}
    assert parts[1]["type"] == "text"
    assert "markdown" in parts[1]["text"]


def test_structure_text_request_shape():
    handler, seen = _recording([httpx.Response(200, json=_completion('{"a": 1}'))])
    out = asyncio.run(_client(handler).structure_text("# Title\nBody"))

    assert out == '{"a": 1}'
    body = json.loads(seen[0].content)
    assert body["response_format"] == {"type": "json_object"}
    assert body["temperature"] == 0
    prompt = body["messages"][0]["content"][0]["text"]
    assert "# Title\nBody" in prompt
    assert "strictly be json" in prompt


def test_http_error_carries_status_and_body():
    handler, seen = _recording([httpx.Response(500, text="upstream exploded")])
    with pytest.raises(RemoteAPIError) as ei:
        asyncio.run(_client(handler).extract_text(DATA_URL))

    assert ei.value.status_code == 500
    assert ei.value.body == "upstream exploded"
    assert "500" in str(ei.value)
    # no retries
    assert len(seen) == 1


def test_connection_error_is_remote_error():
    def handler(request):
        raise httpx.ConnectError("network down", request=request)

    with pytest.raises(RemoteAPIError) as ei:
        asyncio.run(_client(handler).structure_text("text"))
    assert ei.value.status_code is None


def test_empty_choices_is_malformed():
    payload = _completion("x")
    payload["choices"] = []
    handler, _ = _recording([httpx.Response(200, json=payload)])
    with pytest.raises(MalformedResponse):
        asyncio.run(_client(handler).extract_text(DATA_URL))


@pytest.mark.parametrize("url", ["", "https://example.com/a.jpg", "data:image/jpeg;base64,", "data:image/jpeg;base64,@@@"])
def test_bad_data_url_rejected_before_request(url):
    handler, seen = _recording([])
    with pytest.raises(ValueError):
        asyncio.run(_client(handler).extract_text(url))
    assert seen == []


def test_empty_text_rejected_before_request():
    handler, seen = _recording([])
    with pytest.raises(ValueError):
        asyncio.run(_client(handler).structure_text("   "))
    assert seen == []


def test_pipeline_over_http_500_skips_structuring():
    handler, seen = _recording([httpx.Response(500, text="Internal Server Error")])
    p = OCRPipeline(_client(handler))
    p.capture(CapturedImage(uri="f", width=1, height=1, base64="aGVsbG8="))
    result = asyncio.run(p.process())

    assert "500" in result.error
    assert len(seen) == 1
    assert p.processing is False


def test_pipeline_over_http_success():
    handler, seen = _recording([
        httpx.Response(200, json=_completion("# Title\nBody")),
        httpx.Response(200, json=_completion('{"title":"Title","body":"Body"}')),
    ])
    p = OCRPipeline(_client(handler))
    p.capture(CapturedImage(uri="f", width=1, height=1, base64="aGVsbG8="))
    result = asyncio.run(p.process())

    assert result.raw == "# Title\nBody"
    assert result.structured == {"title": "Title", "body": "Body"}
    assert len(seen) == 2


def _html_page():
    return httpx.Response(200, text="<html>gateway</html>", headers={"content-type": "text/html"})


def test_non_json_body_is_malformed():
    handler, _ = _recording([_html_page()])
    with pytest.raises(MalformedResponse):
        asyncio.run(_client(handler).extract_text(DATA_URL))


def test_pipeline_over_non_json_body_yields_error():
    handler, seen = _recording([_html_page()])
    p = OCRPipeline(_client(handler))
    p.capture(CapturedImage(uri="f", width=1, height=1, base64="aGVsbG8="))
    result = asyncio.run(p.process())

    assert result.error.startswith("Failed to process image:")
    assert result.raw is None
    assert len(seen) == 1
    assert p.processing is False
