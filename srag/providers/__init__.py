from .anthropic import AnthropicProvider
from .openai import OpenAIProvider
from .registry import ProviderRegistry
from .types import Provider, resolve_provider

__all__ = ["AnthropicProvider", "OpenAIProvider", "ProviderRegistry", "Provider", "resolve_provider"]
