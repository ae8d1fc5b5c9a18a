from __future__ import annotations

import datetime

import pytest

from script_bridge import InputSchemaError, schema_from_fields
from script_bridge.schema import SCHEMA_MISMATCH_MESSAGE, validate_arguments

FIELDS = [
    {"property": "query", "type": "string", "description": "Search text", "required": True},
    {"property": "limit", "type": "number"},
    {"property": "exact", "type": "boolean"},
    {"property": "since", "type": "date"},
]


def test_model_fields_and_descriptions() -> None:
    schema = schema_from_fields(FIELDS)
    assert set(schema.model_fields) == {"query", "limit", "exact", "since"}
    assert schema.model_fields["query"].is_required()
    assert schema.model_fields["query"].description == "Search text"
    assert not schema.model_fields["limit"].is_required()


def test_schema_accepts_json_text() -> None:
    schema = schema_from_fields('[{"property": "q", "type": "string", "required": true}]', model_name="Search")
    assert schema.__name__ == "Search"
    assert validate_arguments(schema, {"q": "x"}) == {"q": "x"}


def test_validated_arguments_are_json_ready() -> None:
    schema = schema_from_fields(FIELDS)
    args = validate_arguments(schema, {"query": "books", "since": datetime.date(2024, 5, 1), "exact": True})
    assert args == {"query": "books", "limit": None, "exact": True, "since": "2024-05-01"}


def test_missing_required_field() -> None:
    schema = schema_from_fields(FIELDS)
    with pytest.raises(InputSchemaError) as exc:
        validate_arguments(schema, {"limit": 3})
    assert str(exc.value).startswith(SCHEMA_MISMATCH_MESSAGE)
    assert "query" in str(exc.value)
    assert exc.value.raw_input == '{"limit": 3}'


def test_wrong_type() -> None:
    schema = schema_from_fields(FIELDS)
    with pytest.raises(InputSchemaError, match="limit"):
        validate_arguments(schema, {"query": "books", "limit": "many"})


def test_without_schema_arguments_must_be_a_mapping() -> None:
    assert validate_arguments(None, {"anything": [1]}) == {"anything": [1]}
    with pytest.raises(InputSchemaError, match="must be an object"):
        validate_arguments(None, ["not", "a", "mapping"])


@pytest.mark.parametrize(
    ("fields", "message"),
    [
        ("{bad json", "Invalid JSON in the tool schema"),
        ("[" * 100_000, "Invalid JSON in the tool schema"),
        ('{"property": "q"}', "must be a list"),
        (["q"], "must be an object"),
        ([{"property": "not valid"}], "Invalid tool schema property name"),
        ([{"property": "_private"}], "Invalid tool schema property name"),
        ([{"property": "q", "type": "uuid"}], "Unsupported tool schema type"),
    ],
)
def test_invalid_field_definitions(fields: object, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        schema_from_fields(fields)  # type: ignore[arg-type]
