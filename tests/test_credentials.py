import json

import httpx
import pytest

from prdgen.llm.credentials import (
    REMOTE_MANAGED,
    FileCredentialStore,
    InMemoryCredentialStore,
    RemoteSecretStore,
    mask_key,
)


def test_file_store_last_write_wins(tmp_path):
    store = FileCredentialStore(tmp_path / "keys" / "credentials.json")
    assert store.get("openai") is None
    store.set("openai", "  sk-one  ")
    store.set("openai", "sk-two")
    store.set("anthropic", "sk-ant")
    assert store.get("openai") == "sk-two"
    assert store.is_configured("anthropic")
    data = json.loads((tmp_path / "keys" / "credentials.json").read_text())
    assert data == {"anthropic": "sk-ant", "openai": "sk-two"}


def test_file_store_remove(tmp_path):
    store = FileCredentialStore(tmp_path / "credentials.json")
    store.set("openai", "sk-one")
    store.remove("openai")
    store.remove("openai")
    assert store.get("openai") is None
    assert not store.is_configured("openai")


def test_empty_key_rejected():
    store = InMemoryCredentialStore()
    with pytest.raises(ValueError):
        store.set("openai", "   ")


def test_mask_key():
    assert mask_key("short") == "*****"
    assert mask_key("12345678") == "********"
    assert mask_key("sk-abcdefgh1234") == "sk-a*******1234"


def test_remote_store_never_returns_the_value():
    secrets = {}

    def handler(request: httpx.Request) -> httpx.Response:
        provider = request.url.path.rsplit("/", 1)[-1]
        if request.method == "PUT":
            secrets[provider] = json.loads(request.content)["value"]
            return httpx.Response(204)
        if request.method == "DELETE":
            if provider not in secrets:
                return httpx.Response(404)
            del secrets[provider]
            return httpx.Response(204)
        return httpx.Response(200, json={"configured": provider in secrets})

    store = RemoteSecretStore("https://proxy.example/fn", transport=httpx.MockTransport(handler))
    assert store.get("openai") is None
    store.set("openai", "sk-secret")
    assert secrets == {"openai": "sk-secret"}
    assert store.get("openai") == REMOTE_MANAGED
    store.remove("openai")
    store.remove("openai")
    assert store.get("openai") is None
