import asyncio
import json

import httpx
import pytest

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.helper.errors import PermanentProviderError, TransientProviderError


@pytest.fixture
def openai_env(monkeypatch):
    monkeypatch.setenv("EMBED_ENGINE", "openai")
    monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("EMBED_OPENAI_BASE_URL", "https://embed.example")


def _embed(client, handler, texts):
    async def run():
        client.set_transport(httpx.MockTransport(handler))
        await client.boot()
        try:
            return await client.do_embed(texts)
        finally:
            await client.close()

    return asyncio.run(run())


def test_manager_picks_engine_from_env(helper_config, openai_env):
    client = EmbedClientManager(helper_config).get_client()

    assert isinstance(client, EmbedClientOpenai)
    assert client.get_engine_name() == "openai"


def test_manager_rejects_unknown_engine(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_ENGINE", "carrierpigeon")

    with pytest.raises(ValueError, match="Unsupported Embed engine"):
        EmbedClientManager(helper_config)


def test_openai_missing_api_key_fails_at_startup(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_ENGINE", "openai")
    monkeypatch.delenv("EMBED_OPENAI_API_KEY", raising=False)

    with pytest.raises(ValueError, match="EMBED_OPENAI_API_KEY"):
        EmbedClientOpenai(helper_config)


def test_openai_vectors_follow_input_order(helper_config, openai_env):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [
            {"index": 1, "embedding": [2.0]},
            {"index": 0, "embedding": [1.0]},
        ]})

    vectors = _embed(EmbedClientOpenai(helper_config), handler, ["first", "second"])

    assert vectors == [[1.0], [2.0]]
    assert seen["url"] == "https://embed.example/v1/embeddings"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["input"] == ["first", "second"]


def test_rate_limit_is_transient_with_retry_after(helper_config, openai_env):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "7"}, text="slow down")

    with pytest.raises(TransientProviderError) as error:
        _embed(EmbedClientOpenai(helper_config), handler, "text")

    assert error.value.status_code == 429
    assert error.value.retry_after == 7.0


def test_bad_request_is_permanent(helper_config, openai_env):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "input too long"})

    with pytest.raises(PermanentProviderError) as error:
        _embed(EmbedClientOpenai(helper_config), handler, "text")

    assert error.value.status_code == 400


def test_transport_failure_is_transient(helper_config, openai_env):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientProviderError):
        _embed(EmbedClientOpenai(helper_config), handler, "text")


def test_vector_count_mismatch_is_permanent(helper_config, openai_env):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0]}]})

    with pytest.raises(PermanentProviderError, match="1 vectors for 2 inputs"):
        _embed(EmbedClientOpenai(helper_config), handler, ["a", "b"])


def test_ollama_embeds_and_truncates(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama:11434")
    monkeypatch.setenv("EMBED_MODEL_MAX_CHARS", "5")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"embeddings": [[0.5, 0.25]]})

    client = EmbedClientOllama(helper_config)
    vectors = _embed(client, handler, "a long text")

    assert vectors == [[0.5, 0.25]]
    assert seen["url"] == "http://ollama:11434/api/embed"
    assert seen["body"]["input"] == ["a lon"]


def test_ollama_empty_response_is_permanent(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama:11434")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"embeddings": []})

    with pytest.raises(PermanentProviderError):
        _embed(EmbedClientOllama(helper_config), handler, "text")
