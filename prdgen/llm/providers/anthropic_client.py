from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, Optional

import httpx

from prdgen.llm.catalog import ModelSpec
from prdgen.llm.credentials import CredentialStore
from prdgen.llm.errors import ClassifiedError, ErrorKind
from prdgen.llm.sse import iter_sse_json
from prdgen.llm.types import Request, Response, Usage

from .base import ProviderAdapter

_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
    "refusal": "content_filter",
}

_TRANSIENT_STREAM_ERRORS = {"overloaded_error", "api_error", "rate_limit_error"}


class AnthropicClient(ProviderAdapter):
    """Minimal Anthropic Messages API client via REST.

    Anthropic uses a slightly different schema: system prompts are not part
    of the message list but go into a top-level `system` field, and streamed
    text arrives in `content_block_delta` events until `message_stop`.

    Authentication: a key from the credential store or env var `ANTHROPIC_API_KEY`.
    """

    name = "anthropic"
    label = "Anthropic"
    env_var = "ANTHROPIC_API_KEY"
    endpoint = "messages"

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 60.0,
        default_max_tokens: int = 1000,
        default_temperature: float = 0.7,
        transport: Optional[httpx.BaseTransport] = None,
        api_version: str = "2023-06-01",
    ):
        super().__init__(
            credentials=credentials,
            base_url=base_url,
            timeout_s=timeout_s,
            default_max_tokens=default_max_tokens,
            default_temperature=default_temperature,
            transport=transport,
        )
        self.api_version = api_version

    @classmethod
    def default_base_url(cls) -> str:
        return "https://api.anthropic.com/v1"

    def auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"x-api-key": api_key, "anthropic-version": self.api_version}

    def build_payload(self, req: Request, model: ModelSpec, stream: bool) -> Dict[str, Any]:
        system = [m.content for m in req.messages if m.role == "system"]
        payload: Dict[str, Any] = {
            "model": model.id,
            "messages": [m.to_dict() for m in req.messages if m.role != "system"],
            # Anthropic caps temperature at 1.0
            "temperature": min(self.temperature(req), 1.0),
            "max_tokens": self.max_tokens(req, model),
            "stream": stream,
        }
        if system:
            payload["system"] = "\n\n".join(system)
        return payload

    def parse_response(self, raw: Dict[str, Any], req: Request) -> Response:
        blocks = raw["content"]
        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        usage = raw.get("usage") or {}
        return Response(
            content=text,
            model=req.model,
            usage=Usage(
                prompt_tokens=int(usage.get("input_tokens") or 0),
                completion_tokens=int(usage.get("output_tokens") or 0),
            ),
            finish_reason=_STOP_REASONS.get(raw.get("stop_reason") or "end_turn", "stop"),
        )

    def iter_deltas(self, text_chunks: Iterable[str]) -> Iterator[str]:
        for event in iter_sse_json(text_chunks, sentinel=None):
            if not isinstance(event, dict):
                continue
            kind = event.get("type")
            if kind == "message_stop":
                return
            if kind == "error":
                err = event.get("error") or {}
                raise ClassifiedError(
                    ErrorKind.HTTP_ERROR,
                    f"Anthropic stream error: {err.get('message') or err.get('type') or 'unknown'}",
                    provider=self.name,
                    retryable=err.get("type") in _TRANSIENT_STREAM_ERRORS,
                )
            if kind == "content_block_delta":
                delta = event.get("delta") or {}
                if delta.get("type") == "text_delta" and delta.get("text"):
                    yield delta["text"]
