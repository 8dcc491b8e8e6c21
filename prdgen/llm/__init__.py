"""LLM request dispatch for prdgen.

A request goes through one `DispatchService`: it is validated, rate limited
per model, resolved against the provider catalog and handed to the adapter
registered for that provider. Adapters are minimal REST clients over httpx
for:
- OpenAI Chat Completions
- Anthropic Messages
- Perplexity (OpenAI-compatible)

Streaming replies are decoded from server-sent events into plain text
chunks. Unit tests do not require network access.
"""
from __future__ import annotations

from .errors import ClassifiedError, ErrorKind
from .types import Message, Request, Response, Usage

__all__ = [
    "ClassifiedError",
    "ErrorKind",
    "Message",
    "Request",
    "Response",
    "Usage",
]
