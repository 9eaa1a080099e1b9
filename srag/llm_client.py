"""
Unified client for the supported LLM providers.

Every call resolves its provider from the model identifier, waits on the
client's rate limiter and runs under the retry policy. Responses from all
providers come back as one ``GenerationResponse`` shape.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from .config import Settings, load_settings
from .errors import ConfigurationError, ProviderError, SragError
from .providers.registry import ProviderRegistry
from .providers.types import (
    KNOWN_MODELS,
    GenerationOptions,
    GenerationRequest,
    GenerationResponse,
    Provider,
    resolve_provider,
)
from .rate_limiter import RateLimiter
from .retry import RetryPolicy


class LLMClient:
    """
    Example:
        client = LLMClient(openai_api_key="sk-...")
        resp = await client.generate("What is 2+2?", GenerationOptions(model="gpt-4o"))
    """

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.log = logger or logging.getLogger(__name__)
        self.providers = ProviderRegistry(
            self.settings,
            openai_api_key=openai_api_key,
            anthropic_api_key=anthropic_api_key,
            transport=transport,
        )
        if not self.providers.any_enabled:
            raise ConfigurationError("At least one LLM API key must be configured")

        self.rate_limiter = rate_limiter or RateLimiter(self.settings.requests_per_second)
        self.retry_policy = retry_policy or RetryPolicy(
            self.settings.max_retries,
            self.settings.retry_delay,
            backoff=self.settings.retry_backoff,
            logger=self.log,
        )
        self.log.info(
            "LLM client initialized",
            extra={
                "has_openai": self.has_provider(Provider.OPENAI),
                "has_anthropic": self.has_provider(Provider.ANTHROPIC),
            },
        )

    def has_provider(self, provider: Provider) -> bool:
        return self.providers.enabled(provider)

    def available_models(self) -> List[str]:
        models: List[str] = []
        for provider in Provider:
            if self.has_provider(provider):
                models.extend(KNOWN_MODELS[provider])
        return models

    def build_request(self, prompt: str, options: Optional[GenerationOptions] = None) -> GenerationRequest:
        opts = options or GenerationOptions()
        return GenerationRequest(
            prompt=prompt,
            model=opts.model or self.settings.default_model,
            temperature=opts.temperature if opts.temperature is not None else self.settings.default_temperature,
            max_tokens=opts.max_tokens if opts.max_tokens is not None else self.settings.default_max_tokens,
            top_p=opts.top_p,
            frequency_penalty=opts.frequency_penalty,
            presence_penalty=opts.presence_penalty,
        )

    async def generate(self, prompt: str, options: Optional[GenerationOptions] = None) -> GenerationResponse:
        req = self.build_request(prompt, options)
        self.log.debug(
            "Generating text",
            extra={
                "model": req.model,
                "prompt_length": len(prompt),
                "temperature": req.temperature,
                "max_tokens": req.max_tokens,
            },
        )

        # Both checks happen before any network attempt and are never retried.
        try:
            provider = resolve_provider(req.model)
            adapter = self.providers.get(provider)
        except SragError as e:
            self.log.error(
                "Text generation failed",
                extra={"model": req.model, "prompt_length": len(prompt), "error": str(e)},
            )
            raise

        async def attempt() -> GenerationResponse:
            await self.rate_limiter.wait_if_needed()
            return await adapter.generate(req)

        try:
            response = await self.retry_policy.run(attempt)
        except SragError as e:
            self.log.error(
                "Text generation failed",
                extra={"model": req.model, "prompt_length": len(prompt), "error": str(e)},
            )
            raise
        except Exception as e:
            self.log.error(
                "Text generation failed",
                extra={"model": req.model, "prompt_length": len(prompt), "error": str(e)},
            )
            raise ProviderError(f"Failed to generate text: {e}", provider=provider.value) from e

        self.log.info(
            "Text generation successful",
            extra={
                "model": response.model,
                "content_length": len(response.content),
                "tokens": response.usage.total_tokens if response.usage else None,
            },
        )
        return response
