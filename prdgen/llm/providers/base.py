from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, Optional

import httpx

from prdgen.llm.catalog import ModelSpec
from prdgen.llm.credentials import REMOTE_MANAGED, CredentialStore
from prdgen.llm.errors import ClassifiedError, ErrorKind
from prdgen.llm.types import Request, Response

logger = logging.getLogger(__name__)

# Parsing failures on a provider body mean the wire contract changed under us.
_MALFORMED = (KeyError, IndexError, TypeError, AttributeError, ValueError)


class ChatAdapter(ABC):
    """What the dispatch service needs from a provider."""

    name: str

    @abstractmethod
    def complete(self, req: Request, model: ModelSpec) -> Response:
        raise NotImplementedError

    @abstractmethod
    def stream(self, req: Request, model: ModelSpec) -> Iterator[str]:
        """Yield text deltas in generation order."""
        raise NotImplementedError


class ProviderAdapter(ChatAdapter):
    """HTTP provider base.

    An adapter turns a `Request` into one provider's wire format, performs the
    HTTP call and maps the reply back. Subclasses supply the payload, headers
    and parsers; transport, credentials and error classification live here.
    """

    name: str
    label: str
    env_var: str
    endpoint: str

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 60.0,
        default_max_tokens: int = 1000,
        default_temperature: float = 0.7,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.credentials = credentials
        self.base_url = (base_url or self.default_base_url()).rstrip("/")
        self.timeout_s = timeout_s
        self.default_max_tokens = default_max_tokens
        self.default_temperature = default_temperature
        self._transport = transport

    @classmethod
    @abstractmethod
    def default_base_url(cls) -> str:
        raise NotImplementedError

    @abstractmethod
    def build_payload(self, req: Request, model: ModelSpec, stream: bool) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def auth_headers(self, api_key: str) -> Dict[str, str]:
        raise NotImplementedError

    @abstractmethod
    def parse_response(self, raw: Dict[str, Any], req: Request) -> Response:
        raise NotImplementedError

    @abstractmethod
    def iter_deltas(self, text_chunks: Iterable[str]) -> Iterator[str]:
        """Decode a streaming body (as text reads) into text deltas."""
        raise NotImplementedError

    # -- shared plumbing ---------------------------------------------------

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.endpoint}"

    def api_key(self) -> str:
        key = self.credentials.get(self.name) if self.credentials is not None else None
        key = key or os.environ.get(self.env_var)
        if not key:
            raise ClassifiedError(
                ErrorKind.MISSING_CREDENTIAL,
                f"Missing {self.label} API key (run `prdgen keys set {self.name}` or set {self.env_var})",
                provider=self.name,
            )
        return key

    def headers(self) -> Dict[str, str]:
        key = self.api_key()
        headers = {"Content-Type": "application/json"}
        if key != REMOTE_MANAGED:
            headers.update(self.auth_headers(key))
        return headers

    def max_tokens(self, req: Request, model: ModelSpec) -> int:
        return min(req.max_tokens or self.default_max_tokens, model.max_tokens)

    def temperature(self, req: Request) -> float:
        return self.default_temperature if req.temperature is None else req.temperature

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout_s, transport=self._transport)

    def _http_error(self, r: httpx.Response) -> ClassifiedError:
        detail = ""
        try:
            body = r.json()
            err = body.get("error") if isinstance(body, dict) else None
            if isinstance(err, dict):
                detail = str(err.get("message") or "")
            elif isinstance(err, str):
                detail = err
        except ValueError:
            pass
        detail = detail or r.text[:300] or r.reason_phrase
        return ClassifiedError(
            ErrorKind.HTTP_ERROR,
            f"{self.label} HTTP {r.status_code}: {detail}",
            provider=self.name,
            status_code=r.status_code,
        )

    def _network_error(self, e: httpx.RequestError) -> ClassifiedError:
        return ClassifiedError(ErrorKind.NETWORK_ERROR, f"{self.label} request failed: {e}", provider=self.name)

    def complete(self, req: Request, model: ModelSpec) -> Response:
        payload = self.build_payload(req, model, stream=False)
        headers = self.headers()
        logger.debug("POST %s model=%s messages=%d", self.url, model.id, len(req.messages))
        try:
            with self._client() as client:
                r = client.post(self.url, json=payload, headers=headers)
        except httpx.RequestError as e:
            raise self._network_error(e)
        if r.status_code >= 400:
            raise self._http_error(r)
        try:
            return self.parse_response(r.json(), req)
        except _MALFORMED as e:
            raise ClassifiedError(
                ErrorKind.MALFORMED_RESPONSE,
                f"{self.label} parse failed: {type(e).__name__}: {e}",
                provider=self.name,
            )

    def stream(self, req: Request, model: ModelSpec) -> Iterator[str]:
        payload = self.build_payload(req, model, stream=True)
        headers = self.headers()
        logger.debug("POST %s (stream) model=%s messages=%d", self.url, model.id, len(req.messages))
        try:
            with self._client() as client:
                with client.stream("POST", self.url, json=payload, headers=headers) as r:
                    if r.status_code >= 400:
                        r.read()
                        raise self._http_error(r)
                    yield from self.iter_deltas(r.iter_text())
        except httpx.RequestError as e:
            raise self._network_error(e)
        except _MALFORMED as e:
            raise ClassifiedError(
                ErrorKind.MALFORMED_RESPONSE,
                f"{self.label} stream parse failed: {type(e).__name__}: {e}",
                provider=self.name,
            )
