from __future__ import annotations
import json
import logging
import re
from pathlib import Path
from typing import Optional, Union

from .schema import JSONSchema

logger = logging.getLogger(__name__)

PLACEHOLDERS = ("{document}", "{schema}", "{property_details}")

DEFAULT_EXTRACTION_TEMPLATE = """You are an expert data extraction system tasked with extracting structured information from a document based on a predefined JSON Schema.

## Task

Extract structured data from the following document according to the provided schema. Read the document carefully and extract the requested information as accurately as possible.

## Document

{document}

## Schema

{schema}

## Extraction Requirements

1. **Follow the Schema**: Extract data for each property defined in the schema
2. **Type Accuracy**: Ensure each value matches the expected type (string, number, integer, boolean)
3. **Handle Missing Data**: If information is not available in the document, use `null` for that field
4. **No Assumptions**: Only extract information explicitly stated in the document - do not infer or guess
5. **Standardize Values**: When possible, standardize formats:
   - Numbers: Convert abbreviated forms (e.g., "1M" -> 1000000, "5K" -> 5000, "2.5B" -> 2500000000)
   - Booleans: Convert text to boolean (e.g., "yes" -> true, "no" -> false)
   - Strings: Use the exact text from the document, trimmed of extra whitespace

## Property Details

{property_details}

## Output Format

Return ONLY a valid JSON object with the extracted data. Do not include any explanations, markdown formatting, or additional text.

The output must be a single JSON object with keys matching the schema properties:

{
  "property1": "value1",
  "property2": 123,
  "property3": true,
  "property4": null
}

## Important Notes

- If a value is not found in the document, use `null`
- If a value is found but in a different format, standardize it according to the type
- Do not add properties not defined in the schema
- Ensure all required properties are present (even if `null`)
- For numeric values with suffixes (K, M, B), convert to full numbers
- For boolean-like text (yes/no, true/false), convert to actual booleans
- Remove currency symbols, commas, and other formatting from numbers

## Example

If the schema asks for "population" (integer) and the document says "Population: 2.5M", extract as:
{ "population": 2500000 }

If the schema asks for "is_active" (boolean) and the document says "Status: Active", extract as:
{ "is_active": true }

If the schema asks for "founded_year" (integer) but it's not mentioned in the document, extract as:
{ "founded_year": null }

Now extract the data from the document above and return ONLY the JSON object."""


def render_schema_section(schema: JSONSchema) -> str:
    return json.dumps(
        {
            "title": schema.title,
            "description": schema.description,
            "type": "object",
            "properties": {name: p.to_dict() for name, p in schema.properties.items()},
            "required": schema.required,
        },
        indent=2,
        ensure_ascii=False,
    )


def render_property_details(schema: JSONSchema) -> str:
    blocks = []
    for name, prop in schema.properties.items():
        details = f"- **{name}** ({prop.type})"
        if prop.required:
            details += " [REQUIRED]"
        if prop.description:
            details += f"\n  Description: {prop.description}"
        if prop.examples:
            details += "\n  Examples: " + ", ".join(json.dumps(ex, ensure_ascii=False) for ex in prop.examples)
        blocks.append(details)
    return "\n\n".join(blocks)


def fill_template(template: str, values: dict) -> str:
    """Replace the first occurrence of each placeholder in one pass over the template."""
    pattern = re.compile(r"\{(" + "|".join(re.escape(k) for k in values) + r")\}")
    used = set()

    def _sub(m: re.Match) -> str:
        key = m.group(1)
        if key in used:
            return m.group(0)
        used.add(key)
        return values[key]

    return pattern.sub(_sub, template)


def build_extraction_prompt(document: str, schema: JSONSchema, template: Optional[str] = None) -> str:
    return fill_template(
        template or DEFAULT_EXTRACTION_TEMPLATE,
        {
            "document": document.strip(),
            "schema": render_schema_section(schema),
            "property_details": render_property_details(schema),
        },
    )


def load_prompt_template(path: Union[str, Path]) -> Optional[str]:
    """Read a custom template; None (and a warning) if it is unreadable or lacks placeholders."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to load prompt template, will use default", extra={"path": str(path), "error": str(e)})
        return None
    missing = [p for p in PLACEHOLDERS if p not in text]
    if missing:
        logger.warning(
            "Prompt template is missing placeholders, will use default",
            extra={"path": str(path), "missing": missing},
        )
        return None
    logger.debug("Loaded custom prompt template", extra={"path": str(path)})
    return text
