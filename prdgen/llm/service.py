from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple

from prdgen.config import Settings
from prdgen.llm.catalog import ModelSpec, ProviderCatalog, default_catalog, load_catalog_file
from prdgen.llm.credentials import CredentialStore, FileCredentialStore, RemoteSecretStore
from prdgen.llm.errors import ClassifiedError, ErrorKind
from prdgen.llm.providers.base import ChatAdapter
from prdgen.llm.providers.registry import AdapterRegistry, build_adapters
from prdgen.llm.ratelimit import SlidingWindowRateLimiter
from prdgen.llm.types import Request, Response

logger = logging.getLogger(__name__)


class DispatchService:
    """Single entry point for LLM calls.

    Every call runs the same steps: validate, rate-check, resolve the model
    in the catalog, then delegate to the adapter registered for the model's
    provider. Anything an adapter raises that is not a `ClassifiedError` is
    wrapped as UNKNOWN_ERROR. Nothing is retried here.
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        adapters: AdapterRegistry,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    ):
        self.catalog = catalog
        self.adapters = adapters
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: Optional[CredentialStore] = None,
    ) -> "DispatchService":
        if credentials is None:
            credentials = credential_store_from_settings(settings)
        catalog = load_catalog_file(str(settings.catalog_path)) if settings.catalog_path else default_catalog()
        limiter = SlidingWindowRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_s=settings.rate_limit_window_s,
        )
        return cls(catalog, build_adapters(settings, credentials), limiter)

    # -- steps ---------------------------------------------------------------

    def _provider_hint(self, model_id: str) -> str:
        model = self.catalog.find_model(model_id) if model_id else None
        return model.provider if model else ""

    def _validate(self, req: Request) -> None:
        if not req.model:
            raise ClassifiedError(ErrorKind.MISSING_MODEL, "Model is required")
        provider = self._provider_hint(req.model)
        if not req.messages:
            raise ClassifiedError(ErrorKind.MISSING_MESSAGES, "Messages are required", provider=provider)
        if req.temperature is not None and not (0.0 <= req.temperature <= 2.0):
            raise ClassifiedError(
                ErrorKind.INVALID_TEMPERATURE,
                f"Temperature must be between 0 and 2 (got {req.temperature})",
                provider=provider,
            )

    def _resolve(self, req: Request, streaming: bool) -> Tuple[ModelSpec, ChatAdapter]:
        self._validate(req)
        self.rate_limiter.check(req.model, provider=self._provider_hint(req.model))
        model = self.catalog.find_model(req.model)
        if model is None:
            raise ClassifiedError(ErrorKind.MODEL_NOT_FOUND, f"Model {req.model} not found")
        if streaming and not model.supports_streaming:
            raise ClassifiedError(
                ErrorKind.STREAMING_NOT_SUPPORTED,
                f"Model {req.model} does not support streaming",
                provider=model.provider,
            )
        adapter = self.adapters.get(model.provider)
        if adapter is None:
            raise ClassifiedError(
                ErrorKind.PROVIDER_NOT_SUPPORTED,
                f"Provider {model.provider} not supported",
                provider=model.provider,
            )
        return model, adapter

    @staticmethod
    def _wrap(e: Exception, provider: str) -> ClassifiedError:
        if isinstance(e, ClassifiedError):
            return e.with_provider(provider)
        return ClassifiedError(ErrorKind.UNKNOWN_ERROR, str(e) or type(e).__name__, provider=provider)

    # -- public API ----------------------------------------------------------

    def dispatch(self, req: Request) -> Response:
        model, adapter = self._resolve(req, streaming=False)
        logger.debug("Dispatching %s to %s", model.id, model.provider)
        try:
            resp = adapter.complete(req, model)
        except Exception as e:
            raise self._wrap(e, model.provider)
        logger.info(
            "%s/%s finished (%s): %d prompt + %d completion tokens",
            model.provider,
            model.id,
            resp.finish_reason,
            resp.usage.prompt_tokens,
            resp.usage.completion_tokens,
        )
        return resp

    def stream(self, req: Request) -> Iterator[str]:
        """Validate and resolve now; return an iterator over text chunks.

        Closing the iterator early closes the underlying HTTP stream.
        """
        model, adapter = self._resolve(req, streaming=True)
        logger.debug("Streaming %s from %s", model.id, model.provider)
        return self._relay(adapter, req, model)

    def _relay(self, adapter: ChatAdapter, req: Request, model: ModelSpec) -> Iterator[str]:
        chunks = 0
        try:
            for text in adapter.stream(req, model):
                chunks += 1
                yield text
        except Exception as e:
            raise self._wrap(e, model.provider)
        logger.info("%s/%s stream finished after %d chunks", model.provider, model.id, chunks)

    def dispatch_stream(self, req: Request, on_chunk: Callable[[str], None]) -> None:
        for text in self.stream(req):
            on_chunk(text)


def credential_store_from_settings(settings: Settings) -> CredentialStore:
    if settings.secret_proxy_url:
        return RemoteSecretStore(settings.secret_proxy_url, timeout_s=settings.request_timeout_s)
    return FileCredentialStore(Path(settings.credentials_path))
