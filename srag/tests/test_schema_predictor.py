import copy
import json
import logging

import pytest

from conftest import CITY_SCHEMA
from srag.config import Settings
from srag.errors import ParseError, ProviderError, ValidationError
from srag.providers.types import GenerationOptions, GenerationResponse
from srag.schema import JSONSchema
from srag.schema_predictor import SchemaPredictor, format_documents, format_questions, versioned_path


class ScriptedLLM:
    """Replies with the queued texts in order and remembers the prompts it saw."""

    def __init__(self, replies, settings=None):
        self.settings = settings or Settings(openai_api_key="sk")
        self.replies = list(replies)
        self.calls = []

    async def generate(self, prompt, options=None):
        self.calls.append((prompt, options))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return GenerationResponse(content=reply, model="gpt-4o")


def schema_with(**extra_properties):
    definition = copy.deepcopy(CITY_SCHEMA)
    definition["properties"].update(extra_properties)
    return definition


def fenced(definition):
    return "Here is the schema:\n```json\n" + json.dumps(definition, indent=2) + "\n```"


def test_format_helpers():
    assert format_documents(["  first ", "second"]) == "### Document 1\n\nfirst\n\n### Document 2\n\nsecond\n"
    assert format_questions([" How many? ", "Where?"]) == "1. How many?\n2. Where?"


def test_versioned_path(tmp_path):
    assert versioned_path(tmp_path / "city.json", 2) == tmp_path / "city.v2.json"
    assert versioned_path(tmp_path / "city.json", None) == tmp_path / "city.json"


def test_first_prompt_lists_documents():
    predictor = SchemaPredictor(ScriptedLLM([]))
    prompt = predictor.build_first_iteration_prompt(["Paris has {population} of 2.1M."])
    assert "### Document 1\n\nParis has {population} of 2.1M." in prompt
    assert "string, number, integer, boolean" in prompt
    assert "{documents}" not in prompt


def test_refinement_prompt_includes_current_schema_and_questions(city_schema):
    predictor = SchemaPredictor(ScriptedLLM([]))
    prompt = predictor.build_refinement_prompt(city_schema, ["Lyon"], ["Which is the capital?"])
    assert city_schema.to_json(pretty=True) in prompt
    assert "### Document 1\n\nLyon" in prompt
    assert "1. Which is the capital?" in prompt


def test_refinement_prompt_without_questions(city_schema):
    prompt = SchemaPredictor(ScriptedLLM([])).build_refinement_prompt(city_schema, ["Lyon"], [])
    assert "(no questions given)" in prompt


@pytest.mark.asyncio
async def test_generate_initial_schema():
    llm = ScriptedLLM([fenced(CITY_SCHEMA)])
    options = GenerationOptions(model="claude-3-haiku-20240307")
    schema = await SchemaPredictor(llm).generate_initial_schema(["Paris, 2.1M people"], options)
    assert schema == JSONSchema.from_dict(CITY_SCHEMA)
    assert llm.calls[0][1] is options


@pytest.mark.asyncio
async def test_reply_without_json_is_a_parse_error():
    with pytest.raises(ParseError):
        await SchemaPredictor(ScriptedLLM(["I cannot help with that."])).generate_initial_schema(["doc"])


@pytest.mark.asyncio
async def test_nested_property_is_rejected(caplog):
    nested = schema_with(districts={"type": "array", "description": "District names", "examples": [["1er"]]})
    with caplog.at_level(logging.ERROR, logger="srag.schema_predictor"):
        with pytest.raises(ValidationError, match="Invalid JSON Schema"):
            await SchemaPredictor(ScriptedLLM([fenced(nested)])).generate_initial_schema(["doc"])
    assert any(r.getMessage() == "Schema generation failed" for r in caplog.records)


@pytest.mark.asyncio
async def test_llm_failure_propagates():
    llm = ScriptedLLM([ProviderError("down", provider="openai", status_code=503)])
    with pytest.raises(ProviderError):
        await SchemaPredictor(llm).generate_initial_schema(["doc"])


@pytest.mark.asyncio
async def test_predict_schema_refines_with_samples():
    refined = schema_with(country={"type": "string", "description": "Country the city is in", "examples": ["France"]})
    llm = ScriptedLLM([fenced(CITY_SCHEMA), json.dumps(refined), fenced(refined)])
    docs = [f"doc {i}" for i in range(5)]
    questions = ["q1", "q2", "q3"]

    schema = await SchemaPredictor(llm).predict_schema(docs, questions, iterations=3, num_docs=2, num_questions=1)

    assert schema.has_property("country")
    assert len(llm.calls) == 3
    first, second, third = (prompt for prompt, _ in llm.calls)
    assert "### Document 2" in first and "### Document 3" not in first
    assert '"title": "City"' in second and '"country"' not in second
    assert '"country"' in third
    assert "1. q1" in second and "q2" not in second


@pytest.mark.asyncio
async def test_predict_schema_uses_configured_iterations():
    settings = Settings(openai_api_key="sk", schema_num_iterations=2)
    llm = ScriptedLLM([fenced(CITY_SCHEMA)] * 2, settings=settings)
    await SchemaPredictor(llm).predict_schema(["doc"])
    assert len(llm.calls) == 2


@pytest.mark.asyncio
async def test_single_iteration_skips_refinement():
    llm = ScriptedLLM([fenced(CITY_SCHEMA)])
    await SchemaPredictor(llm).predict_schema(["doc"], ["q"], iterations=1)
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_predict_schema_argument_checks():
    predictor = SchemaPredictor(ScriptedLLM([]))
    with pytest.raises(ValueError):
        await predictor.predict_schema(["doc"], iterations=0)
    with pytest.raises(ValueError):
        await predictor.predict_schema([])


def test_review_schema_flags_thin_properties(city_schema, caplog):
    with caplog.at_level(logging.WARNING, logger="srag.schema_predictor"):
        warnings = SchemaPredictor(ScriptedLLM([])).review_schema(city_schema)
    # only "name" has two examples; "City name" is a short description
    assert 'Property "population" has fewer than 2 examples' in warnings
    assert 'Property "name" has fewer than 2 examples' not in warnings
    assert 'Property "name" has a short description' in warnings
    assert len(caplog.records) == len(warnings)


def test_save_and_load_schema(tmp_path, city_schema):
    predictor = SchemaPredictor(ScriptedLLM([]))
    written = predictor.save_schema(city_schema, tmp_path / "nested" / "city.json", version=1)
    assert written == tmp_path / "nested" / "city.v1.json"
    assert written.read_text(encoding="utf-8").startswith("{\n  ")
    assert predictor.load_schema(written) == city_schema


def test_load_missing_schema(tmp_path):
    with pytest.raises(ValidationError, match="Schema file not found"):
        SchemaPredictor(ScriptedLLM([])).load_schema(tmp_path / "absent.json")
