import asyncio
import logging

import httpx
import pytest

from srag.config import Settings
from srag.errors import ConfigurationError, ProviderError, UnknownProviderError
from srag.llm_client import LLMClient
from srag.providers.types import GenerationOptions, Provider
from srag.rate_limiter import RateLimiter
from srag.retry import RetryPolicy


def openai_ok(content="answer", model="gpt-4o"):
    return httpx.Response(200, json={
        "model": model,
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
    })


class CountingTransport(httpx.MockTransport):
    def __init__(self, responses):
        self.requests = []
        self._responses = list(responses)
        super().__init__(self._handle)

    def _handle(self, request):
        self.requests.append(request)
        r = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        # fresh Response per request; the last one may be served repeatedly
        return httpx.Response(r.status_code, content=r.content, headers=r.headers)


def test_requires_at_least_one_key():
    with pytest.raises(ConfigurationError, match="At least one LLM API key"):
        LLMClient(settings=Settings())


def test_available_models_follow_configured_keys():
    client = LLMClient(settings=Settings(anthropic_api_key="ak"))
    assert client.has_provider(Provider.ANTHROPIC)
    assert not client.has_provider(Provider.OPENAI)
    models = client.available_models()
    assert "claude-3-opus-20240229" in models
    assert "gpt-4o" not in models


def test_build_request_applies_defaults(settings):
    client = LLMClient(settings=settings)
    req = client.build_request("p", GenerationOptions(temperature=0.0))
    assert req.model == "gpt-4o"
    assert req.temperature == 0.0
    assert req.max_tokens == 4096
    assert req.top_p is None


def test_options_are_validated():
    with pytest.raises(ValueError):
        GenerationOptions(temperature=3.0)
    with pytest.raises(ValueError):
        GenerationOptions(max_tokens=0)


@pytest.mark.asyncio
async def test_generate_dispatches_to_openai(settings):
    transport = CountingTransport([openai_ok("42")])
    client = LLMClient(settings=settings, transport=transport)
    resp = await client.generate("What is 6*7?", GenerationOptions(model="gpt-4o"))
    assert resp.content == "42"
    assert resp.usage.total_tokens == 5
    assert len(transport.requests) == 1
    assert transport.requests[0].url.path == "/v1/chat/completions"


@pytest.mark.asyncio
async def test_generate_dispatches_to_anthropic(settings):
    transport = CountingTransport([httpx.Response(200, json={
        "model": "claude-3-opus-20240229",
        "content": [{"type": "text", "text": "hi"}],
        "usage": {"input_tokens": 1, "output_tokens": 2},
    })])
    client = LLMClient(settings=settings, transport=transport)
    resp = await client.generate("hello", GenerationOptions(model="claude-3-opus-20240229"))
    assert resp.content == "hi"
    assert transport.requests[0].url.path == "/v1/messages"


@pytest.mark.asyncio
async def test_unknown_model_fails_without_network(settings):
    transport = CountingTransport([openai_ok()])
    client = LLMClient(settings=settings, transport=transport)
    with pytest.raises(UnknownProviderError):
        await client.generate("hello", GenerationOptions(model="llama-7b"))
    assert transport.requests == []


@pytest.mark.asyncio
async def test_missing_provider_key_fails_without_network():
    transport = CountingTransport([openai_ok()])
    client = LLMClient(settings=Settings(openai_api_key="sk"), transport=transport)
    with pytest.raises(ConfigurationError):
        await client.generate("hello", GenerationOptions(model="claude-3-haiku-20240307"))
    assert transport.requests == []


@pytest.mark.asyncio
async def test_retries_server_errors_then_succeeds(settings):
    transport = CountingTransport([httpx.Response(500, text="oops"), httpx.Response(502, text="bad gw"), openai_ok("fine")])
    client = LLMClient(settings=settings, transport=transport)
    resp = await client.generate("x")
    assert resp.content == "fine"
    assert len(transport.requests) == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(settings):
    transport = CountingTransport([httpx.Response(500, text="down")])
    client = LLMClient(settings=settings, transport=transport)
    with pytest.raises(ProviderError) as exc:
        await client.generate("x")
    assert exc.value.status_code == 500
    assert len(transport.requests) == settings.max_retries + 1


@pytest.mark.asyncio
async def test_unexpected_adapter_error_is_wrapped(settings, monkeypatch):
    client = LLMClient(settings=settings, retry_policy=RetryPolicy(0, 0.0))
    adapter = client.providers.get(Provider.OPENAI)

    async def broken(req):
        raise KeyError("choices")

    monkeypatch.setattr(adapter, "generate", broken)
    with pytest.raises(ProviderError, match="Failed to generate text") as exc:
        await client.generate("x")
    assert isinstance(exc.value.__cause__, KeyError)


@pytest.mark.asyncio
async def test_every_attempt_passes_the_rate_limiter(settings):
    calls = []

    class SpyLimiter(RateLimiter):
        async def wait_if_needed(self):
            calls.append(1)
            return 0.0

    transport = CountingTransport([httpx.Response(500, text="x"), openai_ok()])
    client = LLMClient(settings=settings, transport=transport, rate_limiter=SpyLimiter(10))
    await client.generate("x")
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_resolution_failures_are_logged(caplog):
    client = LLMClient(settings=Settings(openai_api_key="sk"), transport=CountingTransport([openai_ok()]))
    with caplog.at_level(logging.ERROR, logger="srag.llm_client"):
        with pytest.raises(UnknownProviderError):
            await client.generate("hello", GenerationOptions(model="llama-7b"))
        with pytest.raises(ConfigurationError):
            await client.generate("hello", GenerationOptions(model="claude-3-haiku-20240307"))
    failures = [r for r in caplog.records if r.getMessage() == "Text generation failed"]
    assert [r.model for r in failures] == ["llama-7b", "claude-3-haiku-20240307"]
    assert all(r.prompt_length == 5 for r in failures)


def test_client_survives_separate_event_loops(settings):
    transport = CountingTransport([openai_ok("ok")])
    client = LLMClient(settings=settings, transport=transport, retry_policy=RetryPolicy(0, 0.0))

    async def burst():
        return await asyncio.gather(*(client.generate(f"q{i}") for i in range(3)))

    first = asyncio.run(burst())
    second = asyncio.run(burst())
    assert [r.content for r in first + second] == ["ok"] * 6
    assert len(transport.requests) == 6
