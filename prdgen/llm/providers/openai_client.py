from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator

from prdgen.llm.catalog import ModelSpec
from prdgen.llm.errors import ClassifiedError, ErrorKind
from prdgen.llm.sse import iter_sse_json
from prdgen.llm.types import FINISH_REASONS, Request, Response, Usage

from .base import ProviderAdapter


class OpenAIClient(ProviderAdapter):
    """Minimal OpenAI Chat Completions client via REST.

    We use the widely supported `v1/chat/completions` endpoint; messages are
    sent through unchanged and in order. Streaming replies arrive as
    `data: {...}` frames carrying `choices[0].delta.content`, closed by
    `data: [DONE]`.

    Authentication: a key from the credential store or env var `OPENAI_API_KEY`.
    """

    name = "openai"
    label = "OpenAI"
    env_var = "OPENAI_API_KEY"
    endpoint = "chat/completions"

    @classmethod
    def default_base_url(cls) -> str:
        return "https://api.openai.com/v1"

    def auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def build_payload(self, req: Request, model: ModelSpec, stream: bool) -> Dict[str, Any]:
        return {
            "model": model.id,
            "messages": [m.to_dict() for m in req.messages],
            "temperature": self.temperature(req),
            "max_tokens": self.max_tokens(req, model),
            "stream": stream,
        }

    def parse_response(self, raw: Dict[str, Any], req: Request) -> Response:
        choice = raw["choices"][0]
        content = choice["message"].get("content") or ""
        usage = raw.get("usage") or {}
        prompt = int(usage.get("prompt_tokens") or 0)
        completion = int(usage.get("completion_tokens") or 0)
        finish = choice.get("finish_reason") or "stop"
        return Response(
            content=content,
            model=req.model,
            usage=Usage(
                prompt_tokens=prompt,
                completion_tokens=completion,
                total_tokens=int(usage.get("total_tokens") or prompt + completion),
            ),
            finish_reason=finish if finish in FINISH_REASONS else "stop",
        )

    def iter_deltas(self, text_chunks: Iterable[str]) -> Iterator[str]:
        for event in iter_sse_json(text_chunks):
            if not isinstance(event, dict):
                continue
            err = event.get("error")
            if err:
                message = err.get("message") if isinstance(err, dict) else str(err)
                raise ClassifiedError(
                    ErrorKind.HTTP_ERROR,
                    f"{self.label} stream error: {message or 'unknown'}",
                    provider=self.name,
                    retryable=True,
                )
            choices = event.get("choices") or [{}]
            delta = (choices[0] or {}).get("delta") or {}
            content = delta.get("content")
            if content:
                yield content
