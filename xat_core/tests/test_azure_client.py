import asyncio
import json

import httpx
import pytest

from xat_core.domain.exceptions import ApiError, NetworkError, RateLimitError
from xat_core.domain.models import Message, ModelConfiguration
from xat_core.providers.azure_client import AzureOpenAIClient


class SettingsStub:
    http_timeout = 1.0


CONFIG = ModelConfiguration(
    kind="azure",
    model_id="gpt-4o",
    api_url="https://example.openai.azure.com/",
    api_key="azure-key",
    model_name="gpt4o-deploy",
    max_tokens=256,
    temperature=0.2,
    top_p=0.9,
    presence_penalty=0.1,
    frequency_penalty=0.3,
)


def _streaming(chunks):
    async def body():
        for chunk in chunks:
            yield chunk

    return httpx.Response(200, content=body())


def _client(handler):
    return AzureOpenAIClient(CONFIG, SettingsStub(), transport=httpx.MockTransport(handler))


def test_azure_request_shape():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"role": "assistant", "content": "ok"}}],
                "model": "gpt-4o",
                "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
            },
        )

    result = asyncio.run(_client(handler).send("hi", system="be brief"))

    assert seen["url"] == (
        "https://example.openai.azure.com/openai/deployments/gpt4o-deploy/chat/completions"
        "?api-version=2024-02-15-preview"
    )
    assert seen["headers"]["api-key"] == "azure-key"
    assert seen["body"] == {
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ],
        "max_tokens": 256,
        "temperature": 0.2,
        "presence_penalty": 0.1,
        "frequency_penalty": 0.3,
        "top_p": 0.9,
        "stream": False,
    }
    assert result.content == "ok"
    assert result.role == "assistant"
    assert result.model == "gpt-4o"
    assert result.usage.total_tokens == 4


def test_azure_accepts_conversation_history():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "fine"}}]})

    conversation = [
        Message(role="system", content="sys"),
        {"role": "user", "content": "q1"},
        {"role": "assistant", "content": "a1"},
        "q2",
    ]
    result = asyncio.run(_client(handler).send(conversation))
    assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user", "assistant", "user"]
    assert result.content == "fine"


def test_azure_error_envelope_becomes_api_error():
    def handler(request):
        return httpx.Response(400, json={"error": {"code": "BadRequest", "message": "deployment missing"}})

    with pytest.raises(ApiError) as excinfo:
        asyncio.run(_client(handler).send("hi"))
    assert excinfo.value.message == "deployment missing"
    assert excinfo.value.http_status == 400


def test_azure_error_without_envelope_uses_status():
    def handler(request):
        return httpx.Response(503, text="upstream down")

    with pytest.raises(ApiError) as excinfo:
        asyncio.run(_client(handler).send("hi"))
    assert excinfo.value.message == "Azure OpenAI API error: 503"


def test_azure_rate_limit():
    def handler(request):
        return httpx.Response(429, json={"error": {"message": "slow down"}})

    with pytest.raises(RateLimitError) as excinfo:
        asyncio.run(_client(handler).send("hi"))
    assert excinfo.value.http_status == 429


def test_azure_network_error():
    def handler(request):
        raise httpx.ConnectError("dns failure", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(_client(handler).send("hi"))


def test_azure_stream_hello_example():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return _streaming(
            [
                b'data: {"choices":[{"delta":{"content":"He"}}]}\n',
                b'data: {"choices":[{"delta":{"content":"llo"}}]}\n',
                b"data: [DONE]\n",
            ]
        )

    events = []
    result = asyncio.run(_client(handler).send("hi", on_stream=events.append))

    assert seen["body"]["stream"] is True
    assert [(e.kind, e.content) for e in events] == [("delta", "He"), ("delta", "llo"), ("done", "")]
    assert result.content == "Hello"


def test_azure_stream_chunks_split_mid_line():
    def handler(request):
        return _streaming([b'data: {"choices":[{"del', b'ta":{"content":"A"}}]}\nda', b"ta: [DONE]\n"])

    events = []
    result = asyncio.run(_client(handler).send("hi", on_stream=events.append))
    assert [e.kind for e in events] == ["delta", "done"]
    assert result.content == "A"


def test_azure_stream_without_sentinel_still_finishes():
    def handler(request):
        return _streaming([b'data: {"choices":[{"delta":{"content":"partial"}}]}\n'])

    events = []
    asyncio.run(_client(handler).send("hi", on_stream=events.append))
    assert [e.kind for e in events] == ["delta", "done"]


def test_azure_stream_malformed_line_does_not_stop_stream():
    def handler(request):
        return _streaming(
            [
                b"data: {oops\n",
                b'data: {"choices":[{"delta":{"content":"still here"}}]}\n',
                b"data: [DONE]\n",
            ]
        )

    events = []
    result = asyncio.run(_client(handler).send("hi", on_stream=events.append))
    assert [e.kind for e in events] == ["error", "delta", "done"]
    assert result.content == "still here"


def test_azure_stream_async_sink():
    received = []

    async def sink(event):
        await asyncio.sleep(0)
        received.append(event.kind)

    def handler(request):
        return _streaming([b'data: {"choices":[{"delta":{"content":"x"}}]}\n', b"data: [DONE]\n"])

    asyncio.run(_client(handler).send("hi", on_stream=sink))
    assert received == ["delta", "done"]


def test_azure_stream_http_error_reports_and_finishes():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "bad key"}})

    events = []
    with pytest.raises(ApiError):
        asyncio.run(_client(handler).send("hi", on_stream=events.append))
    assert [e.kind for e in events] == ["error", "done"]
    assert events[0].message == "bad key"
