from __future__ import annotations

from typing import Dict, List, Optional

import httpx

from prdgen.config import Settings
from prdgen.llm.credentials import CredentialStore

from .anthropic_client import AnthropicClient
from .base import ChatAdapter
from .openai_client import OpenAIClient
from .perplexity_client import PerplexityClient


class AdapterRegistry:
    """Provider id -> adapter, populated once at startup."""

    def __init__(self) -> None:
        self._adapters: Dict[str, ChatAdapter] = {}

    def register(self, provider_id: str, adapter: ChatAdapter) -> None:
        self._adapters[provider_id] = adapter

    def get(self, provider_id: str) -> Optional[ChatAdapter]:
        return self._adapters.get(provider_id)

    def provider_ids(self) -> List[str]:
        return list(self._adapters)

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._adapters


def build_adapters(
    settings: Settings,
    credentials: Optional[CredentialStore] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> AdapterRegistry:
    """Register the built-in OpenAI, Anthropic and Perplexity adapters.

    With `secret_proxy_url` set, every adapter talks to `{proxy}/{provider}`
    instead of the vendor host.
    """
    base_urls = {
        "openai": settings.openai_base_url,
        "anthropic": settings.anthropic_base_url,
        "perplexity": settings.perplexity_base_url,
    }
    if settings.secret_proxy_url:
        proxy = settings.secret_proxy_url.rstrip("/")
        base_urls = {pid: f"{proxy}/{pid}" for pid in base_urls}

    common = dict(
        credentials=credentials,
        timeout_s=settings.request_timeout_s,
        default_max_tokens=settings.default_max_tokens,
        default_temperature=settings.default_temperature,
        transport=transport,
    )
    registry = AdapterRegistry()
    registry.register("openai", OpenAIClient(base_url=base_urls["openai"], **common))
    registry.register(
        "anthropic",
        AnthropicClient(base_url=base_urls["anthropic"], api_version=settings.anthropic_version, **common),
    )
    registry.register("perplexity", PerplexityClient(base_url=base_urls["perplexity"], **common))
    return registry
