from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    default_model: str = "gpt-4o"
    default_temperature: float = 0.7
    default_max_tokens: int = 4096
    requests_per_second: float = 2.0
    max_retries: int = 3
    retry_delay: float = 1.0
    retry_backoff: float = 1.0
    request_timeout: float = 60.0
    extraction_batch_size: int = 10
    schema_num_iterations: int = 4
    schema_num_sample_docs: int = 12
    schema_num_sample_questions: int = 10
    log_level: str = "INFO"
    log_json: bool = False


# Load .env from the working directory (dev convenience); real environment wins
def _load_env_from_file(env_path: Optional[Path] = None) -> None:
    path = env_path or Path.cwd() / ".env"
    if not path.is_file():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        k, v = line.split("=", 1)
        k = k.strip()
        v = v.strip().strip('"').strip("'")
        if k and v and k not in os.environ:
            os.environ[k] = v


def _str_env(name: str, default: str = "") -> str:
    return (os.environ.get(name, default) or default).strip()


def _optional_env(name: str) -> Optional[str]:
    return _str_env(name) or None


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name) or default)
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name) or default)
    except (TypeError, ValueError):
        return default


def _bool_env(name: str, default: bool = False) -> bool:
    raw = _str_env(name)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def load_settings(env_file: Optional[Path] = None) -> Settings:
    _load_env_from_file(env_file)
    defaults = Settings()
    return Settings(
        openai_api_key=_optional_env("OPENAI_API_KEY"),
        anthropic_api_key=_optional_env("ANTHROPIC_API_KEY"),
        openai_base_url=_str_env("OPENAI_BASE_URL", defaults.openai_base_url).rstrip("/"),
        anthropic_base_url=_str_env("ANTHROPIC_BASE_URL", defaults.anthropic_base_url).rstrip("/"),
        default_model=_str_env("DEFAULT_LLM_MODEL", defaults.default_model),
        default_temperature=_float_env("DEFAULT_LLM_TEMPERATURE", defaults.default_temperature),
        default_max_tokens=_int_env("DEFAULT_LLM_MAX_TOKENS", defaults.default_max_tokens),
        requests_per_second=_float_env("LLM_REQUESTS_PER_SECOND", defaults.requests_per_second),
        max_retries=_int_env("LLM_MAX_RETRIES", defaults.max_retries),
        retry_delay=_float_env("LLM_RETRY_DELAY", defaults.retry_delay),
        retry_backoff=_float_env("LLM_RETRY_BACKOFF", defaults.retry_backoff),
        request_timeout=_float_env("LLM_TIMEOUT", defaults.request_timeout),
        extraction_batch_size=_int_env("EXTRACTION_BATCH_SIZE", defaults.extraction_batch_size),
        schema_num_iterations=_int_env("SCHEMA_NUM_ITERATIONS", defaults.schema_num_iterations),
        schema_num_sample_docs=_int_env("SCHEMA_NUM_SAMPLE_DOCS", defaults.schema_num_sample_docs),
        schema_num_sample_questions=_int_env("SCHEMA_NUM_SAMPLE_QUESTIONS", defaults.schema_num_sample_questions),
        log_level=_str_env("LOG_LEVEL", defaults.log_level).upper(),
        log_json=_bool_env("LOG_JSON", defaults.log_json),
    )
