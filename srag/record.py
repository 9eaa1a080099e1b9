from __future__ import annotations
import math
import re
from typing import Any, Dict, List, Optional, Union

from .errors import ValidationError
from .schema import JSONSchema

Value = Optional[Union[str, int, float, bool]]
RecordData = Dict[str, Value]

MULTIPLIERS = {
    "K": 1_000,
    "M": 1_000_000,
    "B": 1_000_000_000,
    "T": 1_000_000_000_000,
}

TRUTHY = {"yes", "true", "1", "y", "t", "on", "enabled"}
FALSY = {"no", "false", "0", "n", "f", "off", "disabled"}

LEADING_INT = re.compile(r"^[+-]?\d+")
LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:E[+-]?\d+)?")


def _leading_float(text: str) -> Optional[float]:
    m = LEADING_FLOAT.match(text)
    return float(m.group(0)) if m else None


def _split_suffix(text: str) -> tuple[str, int]:
    for suffix, mult in MULTIPLIERS.items():
        if text.endswith(suffix):
            return text[:-1].strip(), mult
    return text, 1


def standardize_integer(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return math.floor(value) if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = value.strip().upper().replace(",", "")
        body, mult = _split_suffix(cleaned)
        if mult != 1:
            num = _leading_float(body)
            return math.floor(num * mult) if num is not None else None
        m = LEADING_INT.match(cleaned)
        return int(m.group(0)) if m else None
    return None


def standardize_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = value.strip().upper().replace(",", "")
        if cleaned.endswith("%"):
            num = _leading_float(cleaned[:-1].strip())
            return num / 100 if num is not None else None
        body, mult = _split_suffix(cleaned)
        num = _leading_float(body)
        return num * mult if num is not None else None
    return None


def standardize_boolean(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned in TRUTHY:
            return True
        if cleaned in FALSY:
            return False
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return value != 0
    return None


def standardize_string(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    return None


_STANDARDIZERS = {
    "integer": standardize_integer,
    "number": standardize_number,
    "boolean": standardize_boolean,
    "string": standardize_string,
}


def standardize_value(value: Any, type_: str) -> Value:
    if value is None:
        return None
    fn = _STANDARDIZERS.get(type_)
    return fn(value) if fn else None


class Record:
    """One extracted row: flat data bound to the schema it was extracted with."""

    def __init__(self, data: RecordData, schema: JSONSchema, validate: bool = True) -> None:
        self._schema = schema
        self._data: RecordData = dict(data)
        if validate:
            self.validate()

    @property
    def schema(self) -> JSONSchema:
        return self._schema

    @property
    def data(self) -> RecordData:
        return dict(self._data)

    def get(self, field_name: str) -> Value:
        return self._data.get(field_name)

    def field_names(self) -> List[str]:
        return list(self._data)

    def validation_errors(self) -> List[str]:
        errors: List[str] = []
        for name in self._schema.property_names():
            value = self._data.get(name)
            if value is None:
                if self._schema.is_required(name):
                    errors.append(f'Required field "{name}" is missing')
                continue
            if not self._schema.validate_value(name, value):
                errors.append(
                    f'Invalid value for field "{name}". Expected type: '
                    f"{self._schema.property_type(name)}, received: {type(value).__name__}"
                )
        for name in self._data:
            if not self._schema.has_property(name):
                errors.append(f'Field "{name}" is not defined in schema')
        return errors

    def validate(self) -> None:
        errors = self.validation_errors()
        if errors:
            raise ValidationError(f"Record validation failed: {'; '.join(errors)}", {"errors": errors})

    def standardize(self) -> "Record":
        """New record with every schema property coerced to its declared type; extra fields dropped."""
        data = {
            name: standardize_value(self._data.get(name), prop.type)
            for name, prop in self._schema.properties.items()
        }
        return Record(data, self._schema, validate=True)

    def to_dict(self) -> RecordData:
        return dict(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._schema is other._schema and self._data == other._data

    def __repr__(self) -> str:
        return f"Record({self._schema.title!r}, {self._data!r})"
