"""
Schema prediction from sample documents.

The first pass asks the model for a schema describing the documents; each
further pass shows it the current schema together with the documents and the
questions the records should answer, and asks for an improved version. Every
reply goes through the same JSON recovery as record extraction and must
validate as a ``JSONSchema`` before it is accepted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import Settings
from .errors import ValidationError
from .llm_client import LLMClient
from .prompts import fill_template
from .providers.types import GenerationOptions
from .response_parser import parse_json_object
from .schema import JSONSchema

MAX_PROPERTIES_HINT = 50
MIN_DESCRIPTION_LENGTH = 10

FIRST_ITERATION_TEMPLATE = """You are an expert data architect. Design a JSON Schema for the structured records that can be extracted from documents like the samples below.

## Sample Documents

{documents}

## Requirements

1. The schema describes ONE flat record per document: "type" is "object" and every property is a primitive
2. Allowed property types are only: string, number, integer, boolean (no arrays, no nested objects)
3. Every property has a clear "description" of what it holds and how to read it from a document
4. Every property has an "examples" array with at least one realistic value taken from the samples
5. List in "required" only the properties that every document states
6. Use snake_case property names
7. Give the schema a short "title" and a one-sentence "description"

## Output Format

Return ONLY the JSON Schema as a single JSON object:

{
  "title": "...",
  "description": "...",
  "type": "object",
  "properties": {
    "property_name": {"type": "string", "description": "...", "examples": ["..."]}
  },
  "required": ["property_name"]
}"""

REFINEMENT_TEMPLATE = """You are an expert data architect. Improve the JSON Schema below so that records extracted with it can answer the questions that follow.

## Current Schema

{current_schema}

## Sample Documents

{documents}

## Questions the Records Must Answer

{questions}

## Requirements

1. Add properties needed to answer the questions when the documents contain that information
2. Remove or merge properties that are redundant or never present in the documents
3. Keep every property a primitive: string, number, integer or boolean (no arrays, no nested objects)
4. Every property keeps a clear "description" and an "examples" array taken from the documents
5. "required" lists only properties that every document states

## Output Format

Return ONLY the complete revised JSON Schema as a single JSON object with "title", "description", "type": "object", "properties" and "required"."""


def format_documents(documents: Sequence[str]) -> str:
    return "\n".join(f"### Document {i}\n\n{doc.strip()}\n" for i, doc in enumerate(documents, start=1))


def format_questions(questions: Sequence[str]) -> str:
    return "\n".join(f"{i}. {q.strip()}" for i, q in enumerate(questions, start=1))


def versioned_path(path: Union[str, Path], version: Optional[int]) -> Path:
    """``city.json`` + version 2 -> ``city.v2.json``."""
    p = Path(path)
    if version is None:
        return p
    return p.with_name(f"{p.stem}.v{version}{p.suffix}")


class SchemaPredictor:
    def __init__(
        self,
        llm: LLMClient,
        *,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.llm = llm
        self.settings = settings or llm.settings
        self.log = logger or logging.getLogger(__name__)

    def build_first_iteration_prompt(self, documents: Sequence[str]) -> str:
        return fill_template(FIRST_ITERATION_TEMPLATE, {"documents": format_documents(documents)})

    def build_refinement_prompt(
        self,
        schema: JSONSchema,
        documents: Sequence[str],
        questions: Sequence[str],
    ) -> str:
        return fill_template(
            REFINEMENT_TEMPLATE,
            {
                "current_schema": schema.to_json(pretty=True),
                "documents": format_documents(documents),
                "questions": format_questions(questions) or "(no questions given)",
            },
        )

    def parse_schema_response(self, response: str) -> JSONSchema:
        """Model reply -> validated schema. ParseError without JSON, ValidationError for a bad definition."""
        return JSONSchema.from_dict(parse_json_object(response))

    async def _ask(self, prompt: str, options: Optional[GenerationOptions], stage: str) -> JSONSchema:
        try:
            response = await self.llm.generate(prompt, options)
            schema = self.parse_schema_response(response.content)
        except Exception as e:
            self.log.error(
                f"Schema {stage} failed",
                extra={"prompt_length": len(prompt), "error": str(e), "error_type": type(e).__name__},
            )
            raise
        self.log.debug(
            f"Schema {stage} response accepted",
            extra={
                "title": schema.title,
                "properties": len(schema.properties),
                "tokens": response.usage.total_tokens if response.usage else None,
            },
        )
        return schema

    async def generate_initial_schema(
        self,
        documents: Sequence[str],
        options: Optional[GenerationOptions] = None,
    ) -> JSONSchema:
        self.log.info("Generating initial schema", extra={"documents": len(documents)})
        schema = await self._ask(self.build_first_iteration_prompt(documents), options, "generation")
        self.log.info(
            "Initial schema generated",
            extra={"title": schema.title, "properties": len(schema.properties), "required": len(schema.required)},
        )
        return schema

    async def refine_schema(
        self,
        schema: JSONSchema,
        documents: Sequence[str],
        questions: Sequence[str],
        options: Optional[GenerationOptions] = None,
    ) -> JSONSchema:
        self.log.debug(
            "Refining schema",
            extra={"title": schema.title, "documents": len(documents), "questions": len(questions)},
        )
        return await self._ask(self.build_refinement_prompt(schema, documents, questions), options, "refinement")

    async def predict_schema(
        self,
        documents: Sequence[str],
        questions: Sequence[str] = (),
        *,
        iterations: Optional[int] = None,
        num_docs: Optional[int] = None,
        num_questions: Optional[int] = None,
        options: Optional[GenerationOptions] = None,
    ) -> JSONSchema:
        """Initial schema from the first ``num_docs`` documents, then ``iterations - 1`` refinements."""
        iterations = self.settings.schema_num_iterations if iterations is None else iterations
        num_docs = self.settings.schema_num_sample_docs if num_docs is None else num_docs
        num_questions = self.settings.schema_num_sample_questions if num_questions is None else num_questions
        if iterations < 1:
            raise ValueError("iterations must be >= 1")
        if num_docs < 1:
            raise ValueError("num_docs must be >= 1")
        docs = list(documents[:num_docs])
        if not docs:
            raise ValueError("at least one sample document is required")
        qs = list(questions[:max(num_questions, 0)])

        self.log.info(
            "Starting schema prediction",
            extra={"documents": len(docs), "questions": len(qs), "iterations": iterations},
        )
        schema = await self.generate_initial_schema(docs, options)
        for i in range(2, iterations + 1):
            schema = await self.refine_schema(schema, docs, qs, options)
            self.log.info(
                "Schema refinement complete",
                extra={"iteration": i, "iterations": iterations, "title": schema.title, "properties": len(schema.properties)},
            )

        warnings = self.review_schema(schema)
        self.log.info(
            "Schema prediction complete",
            extra={"title": schema.title, "properties": len(schema.properties), "warnings": len(warnings)},
        )
        return schema

    def review_schema(self, schema: JSONSchema) -> List[str]:
        """Quality hints for a valid schema; each one is also logged as a warning."""
        warnings: List[str] = []
        if len(schema.properties) > MAX_PROPERTIES_HINT:
            warnings.append(f"Schema has {len(schema.properties)} properties")
        for name, prop in schema.properties.items():
            if len(prop.examples) < 2:
                warnings.append(f'Property "{name}" has fewer than 2 examples')
            if len(prop.description) < MIN_DESCRIPTION_LENGTH:
                warnings.append(f'Property "{name}" has a short description')
        for w in warnings:
            self.log.warning(w, extra={"title": schema.title})
        return warnings

    def save_schema(self, schema: JSONSchema, path: Union[str, Path], version: Optional[int] = None) -> Path:
        """Write pretty JSON, creating parent directories; returns the path actually written."""
        target = versioned_path(path, version)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(schema.to_json(pretty=True) + "\n", encoding="utf-8")
        self.log.info("Schema saved", extra={"path": str(target), "title": schema.title})
        return target

    def load_schema(self, path: Union[str, Path]) -> JSONSchema:
        p = Path(path)
        if not p.is_file():
            raise ValidationError(f"Schema file not found: {p}", {"path": str(p)})
        schema = JSONSchema.from_file(p)
        self.log.info(
            "Schema loaded",
            extra={"path": str(p), "title": schema.title, "properties": len(schema.properties)},
        )
        return schema
