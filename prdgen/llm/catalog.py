from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field


class ModelSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Model identifier sent on the wire")
    name: str
    provider: str = Field(..., min_length=1)
    max_tokens: int = Field(..., gt=0, description="Upper bound on output tokens")
    cost_per_1k_tokens: float = Field(0.0, ge=0.0)
    supports_streaming: bool = True

    def estimate_cost(self, tokens: int) -> float:
        return self.cost_per_1k_tokens * max(tokens, 0) / 1000.0


class ProviderSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    models: List[ModelSpec] = Field(default_factory=list)
    api_key_required: bool = True


class CatalogFile(BaseModel):
    providers: List[ProviderSpec]


def _model(id: str, name: str, provider: str, max_tokens: int, cost: float, streaming: bool = True) -> ModelSpec:
    return ModelSpec(
        id=id,
        name=name,
        provider=provider,
        max_tokens=max_tokens,
        cost_per_1k_tokens=cost,
        supports_streaming=streaming,
    )


DEFAULT_PROVIDERS: List[ProviderSpec] = [
    ProviderSpec(
        id="openai",
        name="OpenAI",
        models=[
            _model("gpt-4o", "GPT-4o", "openai", 4096, 0.03),
            _model("gpt-4o-mini", "GPT-4o Mini", "openai", 16384, 0.00015),
            _model("gpt-3.5-turbo", "GPT-3.5 Turbo", "openai", 4096, 0.002),
        ],
    ),
    ProviderSpec(
        id="anthropic",
        name="Anthropic",
        models=[
            _model("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", "anthropic", 8192, 0.015),
            _model("claude-3-5-haiku-20241022", "Claude 3.5 Haiku", "anthropic", 8192, 0.004),
        ],
    ),
    ProviderSpec(
        id="perplexity",
        name="Perplexity",
        models=[
            _model("sonar", "Sonar", "perplexity", 4096, 0.001),
            _model("sonar-pro", "Sonar Pro", "perplexity", 8192, 0.015),
        ],
    ),
]


class ProviderCatalog:
    """Read-only lookup over providers and their models.

    Model ids must be unique across the whole catalog; a duplicate is a
    configuration error and is rejected here rather than shadowed at lookup.
    """

    def __init__(self, providers: Iterable[ProviderSpec]):
        self._providers: Dict[str, ProviderSpec] = {}
        self._models: Dict[str, ModelSpec] = {}
        for p in providers:
            if p.id in self._providers:
                raise ValueError(f"Duplicate provider id: {p.id}")
            for m in p.models:
                if m.provider != p.id:
                    raise ValueError(f"Model {m.id} declares provider {m.provider!r} but is listed under {p.id!r}")
                if m.id in self._models:
                    raise ValueError(
                        f"Duplicate model id {m.id!r} (providers {self._models[m.id].provider!r} and {p.id!r})"
                    )
                self._models[m.id] = m
            self._providers[p.id] = p

    def list_providers(self) -> List[ProviderSpec]:
        return list(self._providers.values())

    def find_provider(self, provider_id: str) -> Optional[ProviderSpec]:
        return self._providers.get(provider_id)

    def find_model(self, model_id: str) -> Optional[ModelSpec]:
        return self._models.get(model_id)

    def models(self) -> List[ModelSpec]:
        return list(self._models.values())


def default_catalog() -> ProviderCatalog:
    return ProviderCatalog(DEFAULT_PROVIDERS)


def load_catalog_file(path: str) -> ProviderCatalog:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if isinstance(data, list):
        data = {"providers": data}
    if not isinstance(data, dict) or "providers" not in data:
        raise ValueError("Catalog YAML must be a list or contain 'providers:' list")
    return ProviderCatalog(CatalogFile.model_validate(data).providers)
