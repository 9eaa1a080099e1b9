import copy
import json

import pytest

from conftest import CITY_SCHEMA
from srag.errors import ValidationError
from srag.schema import JSONSchema, definition_errors


def test_valid_definition_has_no_errors():
    assert definition_errors(CITY_SCHEMA) == []


def test_from_dict_keeps_declaration_order(city_schema):
    assert city_schema.title == "City"
    assert city_schema.property_names() == ["name", "population", "area_km2", "is_capital"]
    assert city_schema.required == ["name"]
    assert city_schema.is_required("name")
    assert not city_schema.is_required("population")
    assert city_schema.property_type("area_km2") == "number"
    assert city_schema.get_property("missing") is None


def test_schema_is_immutable(city_schema):
    with pytest.raises(TypeError):
        city_schema.properties["extra"] = None
    with pytest.raises(AttributeError):
        city_schema.title = "Other"


def test_invalid_definition_lists_every_issue():
    bad = copy.deepcopy(CITY_SCHEMA)
    bad["title"] = ""
    bad["properties"]["population"]["type"] = "array"
    bad["properties"]["name"]["examples"] = []
    bad["required"] = ["name", "mayor"]
    with pytest.raises(ValidationError) as exc:
        JSONSchema.from_dict(bad)
    errors = exc.value.details["errors"]
    assert any(e.startswith("title:") for e in errors)
    assert any(e.startswith("properties/population/type:") for e in errors)
    assert any(e.startswith("properties/name/examples:") for e in errors)
    assert any("'mayor' is not a defined property" in e for e in errors)


def test_empty_properties_rejected():
    bad = dict(CITY_SCHEMA, properties={})
    with pytest.raises(ValidationError):
        JSONSchema.from_dict(bad)


def test_from_json_and_round_trip(tmp_path):
    path = tmp_path / "city.json"
    path.write_text(json.dumps(CITY_SCHEMA), encoding="utf-8")
    schema = JSONSchema.from_file(path)
    assert schema.to_dict() == CITY_SCHEMA
    with pytest.raises(ValidationError, match="Invalid JSON"):
        JSONSchema.from_json("{not json")
    with pytest.raises(ValidationError, match="must be an object"):
        JSONSchema.from_json("[1, 2]")


def test_validate_value(city_schema):
    assert city_schema.validate_value("name", "Paris")
    assert not city_schema.validate_value("name", None)
    assert city_schema.validate_value("population", None)
    assert city_schema.validate_value("population", 10)
    assert not city_schema.validate_value("population", 10.5)
    assert not city_schema.validate_value("population", True)
    assert city_schema.validate_value("area_km2", 10)
    assert city_schema.validate_value("is_capital", False)
    assert not city_schema.validate_value("is_capital", 0)
    assert not city_schema.validate_value("unknown", 1)


def test_summary(city_schema):
    assert city_schema.summary() == 'Schema "City": 4 properties (1 required)'
