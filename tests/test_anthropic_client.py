import json

import httpx
import pytest

from prdgen.llm.catalog import ModelSpec
from prdgen.llm.credentials import InMemoryCredentialStore
from prdgen.llm.errors import ClassifiedError, ErrorKind
from prdgen.llm.providers.anthropic_client import AnthropicClient
from prdgen.llm.types import Message, Request

MODEL = ModelSpec(id="claude-3-5-haiku-20241022", name="Haiku", provider="anthropic", max_tokens=8192)


def _client(handler):
    creds = InMemoryCredentialStore({"anthropic": "sk-ant"})
    return AnthropicClient(credentials=creds, transport=httpx.MockTransport(handler))


def _event(kind, **data):
    data["type"] = kind
    return f"event: {kind}\ndata: {json.dumps(data)}\n\n"


def test_system_messages_are_extracted():
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "content": [{"type": "text", "text": "Hello"}, {"type": "text", "text": "!"}],
                "usage": {"input_tokens": 5, "output_tokens": 2},
                "stop_reason": "max_tokens",
            },
        )

    req = Request(
        model=MODEL.id,
        messages=[
            Message("system", "You are helpful"),
            Message("system", "Context: a todo app"),
            Message("user", "Hi"),
            Message("assistant", "Hello"),
            Message("user", "More"),
        ],
        temperature=1.5,
    )
    resp = _client(handler).complete(req, MODEL)
    body = seen["body"]
    assert body["system"] == "You are helpful\n\nContext: a todo app"
    assert [m["role"] for m in body["messages"]] == ["user", "assistant", "user"]
    assert body["temperature"] == 1.0
    assert seen["headers"]["x-api-key"] == "sk-ant"
    assert seen["headers"]["anthropic-version"] == "2023-06-01"
    assert "authorization" not in seen["headers"]
    assert resp.content == "Hello!"
    assert resp.usage.total_tokens == 7
    assert resp.finish_reason == "length"


def test_stream_text_deltas_until_message_stop():
    body = (
        _event("message_start", message={"usage": {"input_tokens": 3}})
        + _event("content_block_start", index=0, content_block={"type": "text", "text": ""})
        + "event: ping\ndata: {\"type\": \"ping\"}\n\n"
        + _event("content_block_delta", index=0, delta={"type": "text_delta", "text": "Hel"})
        + _event("content_block_delta", index=0, delta={"type": "text_delta", "text": "lo, "})
        + _event("content_block_delta", index=0, delta={"type": "text_delta", "text": "world"})
        + _event("message_stop")
        + _event("content_block_delta", index=0, delta={"type": "text_delta", "text": "ignored"})
    )
    reads = [body[i : i + 7] for i in range(0, len(body), 7)]

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=iter([r.encode() for r in reads]))

    req = Request(model=MODEL.id, messages=[Message("user", "Hi")])
    assert "".join(_client(handler).stream(req, MODEL)) == "Hello, world"


def test_stream_error_event():
    body = _event("error", error={"type": "overloaded_error", "message": "Overloaded"})

    def handler(request):
        return httpx.Response(200, content=body.encode())

    req = Request(model=MODEL.id, messages=[Message("user", "Hi")])
    with pytest.raises(ClassifiedError) as ei:
        list(_client(handler).stream(req, MODEL))
    assert ei.value.kind is ErrorKind.HTTP_ERROR
    assert ei.value.retryable
    assert "Overloaded" in ei.value.message


def test_malformed_body():
    def handler(request):
        return httpx.Response(200, json={"type": "message"})

    req = Request(model=MODEL.id, messages=[Message("user", "Hi")])
    with pytest.raises(ClassifiedError) as ei:
        _client(handler).complete(req, MODEL)
    assert ei.value.kind is ErrorKind.MALFORMED_RESPONSE
