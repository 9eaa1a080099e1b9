"""Schema-driven record extraction from unstructured documents using LLM providers."""

from .config import Settings, load_settings
from .errors import (
    ConfigurationError,
    ParseError,
    ProviderError,
    SragError,
    UnknownProviderError,
    ValidationError,
)
from .llm_client import LLMClient
from .prompts import build_extraction_prompt
from .providers.types import (
    GenerationOptions,
    GenerationRequest,
    GenerationResponse,
    Provider,
    TokenUsage,
    resolve_provider,
)
from .rate_limiter import RateLimiter
from .record import Record
from .record_extractor import RecordExtractor
from .response_parser import parse_record_response
from .retry import RetryPolicy
from .schema import JSONSchema
from .schema_predictor import SchemaPredictor

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "GenerationOptions",
    "GenerationRequest",
    "GenerationResponse",
    "JSONSchema",
    "LLMClient",
    "ParseError",
    "Provider",
    "ProviderError",
    "RateLimiter",
    "Record",
    "RecordExtractor",
    "RetryPolicy",
    "SchemaPredictor",
    "Settings",
    "SragError",
    "TokenUsage",
    "UnknownProviderError",
    "ValidationError",
    "build_extraction_prompt",
    "load_settings",
    "parse_record_response",
    "resolve_provider",
]
