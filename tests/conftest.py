from __future__ import annotations

from typing import Iterator, List

import pytest

from prdgen.llm.catalog import ModelSpec, ProviderCatalog, ProviderSpec
from prdgen.llm.providers.base import ChatAdapter
from prdgen.llm.providers.registry import AdapterRegistry
from prdgen.llm.ratelimit import SlidingWindowRateLimiter
from prdgen.llm.service import DispatchService
from prdgen.llm.types import Response, Usage


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubAdapter(ChatAdapter):
    """Counts calls and replays canned output."""

    name = "stub"

    def __init__(self, response: Response | None = None, chunks: List[str] | None = None, error: Exception | None = None):
        self.response = response or Response(content="ok", model="m1", usage=Usage(1, 1))
        self.chunks = chunks or []
        self.error = error
        self.calls = 0
        self.requests = []

    def complete(self, req, model):
        self.calls += 1
        self.requests.append(req)
        if self.error is not None:
            raise self.error
        return self.response

    def stream(self, req, model) -> Iterator[str]:
        self.calls += 1
        self.requests.append(req)
        for c in self.chunks:
            yield c
        if self.error is not None:
            raise self.error


@pytest.fixture
def catalog() -> ProviderCatalog:
    return ProviderCatalog(
        [
            ProviderSpec(
                id="stub",
                name="Stub",
                models=[
                    ModelSpec(id="m1", name="Model One", provider="stub", max_tokens=2048, cost_per_1k_tokens=0.01),
                    ModelSpec(id="m2", name="No Stream", provider="stub", max_tokens=1024, supports_streaming=False),
                ],
            ),
            ProviderSpec(
                id="orphan",
                name="No adapter",
                models=[ModelSpec(id="o1", name="Orphan", provider="orphan", max_tokens=100)],
            ),
        ]
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub() -> StubAdapter:
    return StubAdapter()


@pytest.fixture
def service(catalog, stub, clock) -> DispatchService:
    adapters = AdapterRegistry()
    adapters.register("stub", stub)
    return DispatchService(catalog, adapters, SlidingWindowRateLimiter(clock=clock))
