from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..errors import UnknownProviderError


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


# Every Provider member must have an entry here.
PROVIDER_PREFIXES: Dict[Provider, Tuple[str, ...]] = {
    Provider.OPENAI: ("gpt-", "o1-"),
    Provider.ANTHROPIC: ("claude-",),
}

KNOWN_MODELS: Dict[Provider, Tuple[str, ...]] = {
    Provider.OPENAI: (
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
        "gpt-3.5-turbo",
        "o1-preview",
        "o1-mini",
    ),
    Provider.ANTHROPIC: (
        "claude-3-5-sonnet-20241022",
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    ),
}


def resolve_provider(model: str) -> Provider:
    """Map a model identifier to exactly one provider or raise UnknownProviderError."""
    matches = [p for p in Provider if any(model.startswith(pre) for pre in PROVIDER_PREFIXES[p])]
    if len(matches) != 1:
        raise UnknownProviderError(model)
    return matches[0]


class GenerationOptions(BaseModel):
    """Unified generation options; unset fields fall back to configured defaults."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    frequency_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    presence_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    model: str
    temperature: float
    max_tokens: int
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None

    @property
    def messages(self) -> List[Dict[str, str]]:
        return [{"role": "user", "content": self.prompt}]


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class GenerationResponse:
    content: str
    model: str
    usage: Optional[TokenUsage] = None
    provider_meta: Dict[str, Any] = field(default_factory=dict)
