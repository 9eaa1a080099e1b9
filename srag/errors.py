from __future__ import annotations
from typing import Any, Dict, Optional


class SragError(Exception):
    """Base class for every error raised by the extraction pipeline."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(SragError):
    """Credentials or settings needed for a call are missing."""


class UnknownProviderError(SragError):
    """The model identifier does not belong to any known provider."""

    def __init__(self, model: str) -> None:
        super().__init__(f"Unknown model: {model}", {"model": model})
        self.model = model


class ProviderError(SragError):
    """The remote call failed or returned something we cannot interpret."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = dict(details or {})
        if provider:
            merged.setdefault("provider", provider)
        if status_code is not None:
            merged.setdefault("status_code", status_code)
        super().__init__(message, merged)
        self.provider = provider
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        # transport failures and 408/429/5xx; other 4xx will fail the same way again
        if self.status_code is None:
            return True
        return self.status_code in (408, 429) or self.status_code >= 500


class ParseError(SragError):
    """No JSON object could be recovered from a model response."""


class ValidationError(SragError):
    """A schema definition or a record does not satisfy its constraints."""


def is_retryable(exc: BaseException) -> bool:
    """Predicate for RetryPolicy(retry_on=...) that skips requests doomed to fail again."""
    if isinstance(exc, (ConfigurationError, UnknownProviderError, ParseError, ValidationError)):
        return False
    if isinstance(exc, ProviderError):
        return exc.retryable
    return True
