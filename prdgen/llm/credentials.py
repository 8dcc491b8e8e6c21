from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import httpx

from .errors import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)

# Returned by RemoteSecretStore.get: the secret exists but stays server-side.
REMOTE_MANAGED = "<remote-managed>"


def mask_key(key: str) -> str:
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


def _clean(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("API key must not be empty")
    return value


class CredentialStore(ABC):
    """One API key per provider id. Last write wins."""

    @abstractmethod
    def get(self, provider_id: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, provider_id: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove(self, provider_id: str) -> None:
        raise NotImplementedError

    def is_configured(self, provider_id: str) -> bool:
        return self.get(provider_id) is not None


class InMemoryCredentialStore(CredentialStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._keys: Dict[str, str] = dict(initial or {})

    def get(self, provider_id: str) -> Optional[str]:
        return self._keys.get(provider_id)

    def set(self, provider_id: str, value: str) -> None:
        self._keys[provider_id] = _clean(value)

    def remove(self, provider_id: str) -> None:
        self._keys.pop(provider_id, None)


class FileCredentialStore(CredentialStore):
    """Keys in a plain JSON object on disk.

    Nothing is encrypted: this is a convenience store for a single local
    user, not a vault.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8").strip()
        if not raw:
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Credential file {self.path} must contain a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")

    def get(self, provider_id: str) -> Optional[str]:
        return self._load().get(provider_id)

    def set(self, provider_id: str, value: str) -> None:
        data = self._load()
        data[provider_id] = _clean(value)
        self._save(data)
        logger.info("Saved API key for %s", provider_id)

    def remove(self, provider_id: str) -> None:
        data = self._load()
        if data.pop(provider_id, None) is not None:
            self._save(data)
            logger.info("Removed API key for %s", provider_id)


class RemoteSecretStore(CredentialStore):
    """Keys held by a secret-manager proxy.

    The proxy accepts writes and deletes but never returns a stored value:
    `get` only reports whether a key is configured, using the
    `REMOTE_MANAGED` marker. Adapters pointed at the proxy send no
    credential header and the proxy injects the key server-side.

    Endpoints (relative to `base_url`):
      GET    /secrets/{provider}  -> {"configured": bool}
      PUT    /secrets/{provider}  <- {"value": "..."}
      DELETE /secrets/{provider}
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def _request(self, method: str, provider_id: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}/secrets/{provider_id}"
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                r = client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise ClassifiedError(ErrorKind.NETWORK_ERROR, f"Secret proxy request failed: {e}", provider=provider_id)
        if r.status_code == 404 and method in ("GET", "DELETE"):
            return r
        if r.status_code >= 400:
            raise ClassifiedError(
                ErrorKind.HTTP_ERROR,
                f"Secret proxy HTTP {r.status_code}: {r.text[:300]}",
                provider=provider_id,
                status_code=r.status_code,
            )
        return r

    def get(self, provider_id: str) -> Optional[str]:
        r = self._request("GET", provider_id)
        if r.status_code == 404:
            return None
        try:
            configured = bool(r.json().get("configured"))
        except (ValueError, AttributeError):
            raise ClassifiedError(
                ErrorKind.MALFORMED_RESPONSE,
                "Secret proxy returned an unexpected body",
                provider=provider_id,
            )
        return REMOTE_MANAGED if configured else None

    def set(self, provider_id: str, value: str) -> None:
        self._request("PUT", provider_id, json={"value": _clean(value)})
        logger.info("Stored API key for %s in secret proxy", provider_id)

    def remove(self, provider_id: str) -> None:
        self._request("DELETE", provider_id)
        logger.info("Removed API key for %s from secret proxy", provider_id)
