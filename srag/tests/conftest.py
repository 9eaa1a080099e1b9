import pytest

from srag.config import Settings
from srag.schema import JSONSchema

CITY_SCHEMA = {
    "title": "City",
    "description": "Basic facts about a city",
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "City name", "examples": ["Paris", "Tokyo"]},
        "population": {"type": "integer", "description": "Number of residents", "examples": [2100000]},
        "area_km2": {"type": "number", "description": "Area in square kilometres", "examples": [105.4]},
        "is_capital": {"type": "boolean", "description": "Whether it is the national capital", "examples": [True]},
    },
    "required": ["name"],
}


@pytest.fixture
def city_schema() -> JSONSchema:
    return JSONSchema.from_dict(CITY_SCHEMA)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="test-openai-key",
        anthropic_api_key="test-anthropic-key",
        requests_per_second=1000.0,
        max_retries=2,
        retry_delay=0.0,
    )
