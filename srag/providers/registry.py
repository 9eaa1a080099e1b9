from __future__ import annotations
from typing import Dict, Optional, Union

import httpx

from ..config import Settings
from ..errors import ConfigurationError
from .anthropic import AnthropicProvider
from .openai import OpenAIProvider
from .types import Provider

ProviderAdapter = Union[OpenAIProvider, AnthropicProvider]


class ProviderRegistry:
    def __init__(
        self,
        settings: Settings,
        *,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._adapters: Dict[Provider, ProviderAdapter] = {
            Provider.OPENAI: OpenAIProvider(
                openai_api_key or settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.request_timeout,
                transport=transport,
            ),
            Provider.ANTHROPIC: AnthropicProvider(
                anthropic_api_key or settings.anthropic_api_key,
                base_url=settings.anthropic_base_url,
                timeout=settings.request_timeout,
                transport=transport,
            ),
        }
        missing = set(Provider) - set(self._adapters)
        if missing:
            raise AssertionError(f"No adapter registered for {sorted(p.value for p in missing)}")

    def enabled(self, provider: Provider) -> bool:
        return self._adapters[provider].enabled

    @property
    def any_enabled(self) -> bool:
        return any(a.enabled for a in self._adapters.values())

    def get(self, provider: Provider) -> ProviderAdapter:
        adapter = self._adapters[provider]
        if not adapter.enabled:
            raise ConfigurationError(
                f"{provider.value} client not initialized: missing API key",
                {"provider": provider.value},
            )
        return adapter
