from __future__ import annotations
import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from jsonschema import Draft202012Validator

from .errors import ValidationError

SCHEMAS_DIR = Path(__file__).resolve().parent / "configs" / "schemas"

PRIMITIVE_TYPES = ("string", "number", "integer", "boolean")

Scalar = Union[str, int, float, bool]

_definition_validator: Optional[Draft202012Validator] = None


def _validator() -> Draft202012Validator:
    global _definition_validator
    if _definition_validator is None:
        path = SCHEMAS_DIR / "extraction_schema.schema.json"
        with open(path, "r", encoding="utf-8") as f:
            _definition_validator = Draft202012Validator(json.load(f))
    return _definition_validator


def definition_errors(definition: Any) -> List[str]:
    """Every problem with a schema definition, formatted as ``path: message``."""
    errors = sorted(_validator().iter_errors(definition), key=lambda e: list(map(str, e.path)))
    out = [f"{'/'.join(map(str, e.path)) or '<root>'}: {e.message}" for e in errors]
    if isinstance(definition, dict) and isinstance(definition.get("properties"), dict):
        for name in definition.get("required") or []:
            if isinstance(name, str) and name not in definition["properties"]:
                out.append(f"required: '{name}' is not a defined property")
    return out


@dataclass(frozen=True)
class SchemaProperty:
    name: str
    type: str
    description: str
    examples: Tuple[Scalar, ...]
    required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "description": self.description, "examples": list(self.examples)}


@dataclass(frozen=True)
class JSONSchema:
    """Immutable schema describing the flat record to extract from each document."""

    title: str
    description: str
    properties: Mapping[str, SchemaProperty]

    @classmethod
    def from_dict(cls, definition: Mapping[str, Any]) -> "JSONSchema":
        errs = definition_errors(definition)
        if errs:
            raise ValidationError(f"Invalid JSON Schema: {'; '.join(errs)}", {"errors": errs})
        required = set(definition.get("required") or [])
        props = {
            name: SchemaProperty(
                name=name,
                type=spec["type"],
                description=spec["description"],
                examples=tuple(spec["examples"]),
                required=name in required,
            )
            for name, spec in definition["properties"].items()
        }
        return cls(
            title=definition["title"],
            description=definition["description"],
            properties=MappingProxyType(props),
        )

    @classmethod
    def from_json(cls, text: str) -> "JSONSchema":
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ValidationError("JSON must be an object")
        return cls.from_dict(parsed)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "JSONSchema":
        return cls.from_json(Path(path).read_text(encoding="utf-8"))

    @property
    def required(self) -> List[str]:
        return [name for name, p in self.properties.items() if p.required]

    def property_names(self) -> List[str]:
        return list(self.properties)

    def get_property(self, name: str) -> Optional[SchemaProperty]:
        return self.properties.get(name)

    def has_property(self, name: str) -> bool:
        return name in self.properties

    def is_required(self, name: str) -> bool:
        prop = self.properties.get(name)
        return bool(prop and prop.required)

    def property_type(self, name: str) -> Optional[str]:
        prop = self.properties.get(name)
        return prop.type if prop else None

    def validate_value(self, name: str, value: Any) -> bool:
        prop = self.properties.get(name)
        if prop is None:
            return False
        if value is None:
            return not prop.required
        # bool is a subclass of int; never accept it for numeric fields
        if prop.type == "string":
            return isinstance(value, str)
        if prop.type == "boolean":
            return isinstance(value, bool)
        if isinstance(value, bool):
            return False
        if prop.type == "integer":
            return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
        if prop.type == "number":
            return isinstance(value, (int, float)) and value == value
        return False

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "type": "object",
            "properties": {name: p.to_dict() for name, p in self.properties.items()},
        }
        if self.required:
            out["required"] = self.required
        return out

    def to_json(self, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), indent=2 if pretty else None)

    def summary(self) -> str:
        return f'Schema "{self.title}": {len(self.properties)} properties ({len(self.required)} required)'
