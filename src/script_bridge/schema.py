from __future__ import annotations

import datetime
import json
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, Field, ValidationError, create_model

from .errors import InputSchemaError

SCHEMA_MISMATCH_MESSAGE = "Received tool input did not match expected schema"

_FIELD_TYPES: dict[str, Any] = {
    "string": str,
    "number": float,
    "boolean": bool,
    "date": datetime.date,
}


def _raw_input(arguments: Any) -> str:
    """Render caller input for diagnostics without ever failing.

    Example:
        ```python
        raw = _raw_input({"query": 1})  # '{"query": 1}'
        ```
    """
    try:
        return json.dumps(arguments, default=str)
    except (TypeError, ValueError):
        return repr(arguments)


def _summarize(exc: ValidationError) -> str:
    """Condense pydantic errors into `field: message` pairs.

    Example:
        ```python
        text = _summarize(exc)  # "query: Field required"
        ```
    """
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def schema_from_fields(
    fields: Sequence[Mapping[str, Any]] | str,
    model_name: str = "ToolInput",
) -> type[BaseModel]:
    """Build a pydantic model from `{property, type, description, required}` records.

    `fields` may also be the JSON text of that list.

    Example:
        ```python
        Schema = schema_from_fields([{"property": "query", "type": "string", "required": True}])
        ```
    """
    if isinstance(fields, str):
        try:
            fields = json.loads(fields)
        except (ValueError, RecursionError) as exc:
            raise ValueError(f"Invalid JSON in the tool schema: {exc}") from exc
    if not isinstance(fields, list):
        raise ValueError("Tool schema must be a list of field definitions")

    definitions: dict[str, Any] = {}
    for item in fields:
        if not isinstance(item, Mapping):
            raise ValueError("Each tool schema field must be an object")
        name = item.get("property")
        if not isinstance(name, str) or not name.isidentifier() or name.startswith("_"):
            raise ValueError(f"Invalid tool schema property name: {name!r}")
        type_name = str(item.get("type", "string")).lower()
        if type_name not in _FIELD_TYPES:
            raise ValueError(f"Unsupported tool schema type '{type_name}' for '{name}'")
        py_type = _FIELD_TYPES[type_name]
        description = item.get("description")
        if item.get("required"):
            definitions[name] = (py_type, Field(..., description=description))
        else:
            definitions[name] = (py_type | None, Field(default=None, description=description))
    return create_model(model_name, **definitions)


def validate_arguments(schema: type[BaseModel] | None, arguments: Any) -> dict[str, Any]:
    """Validate tool arguments and return the JSON-ready argument mapping.

    Without a schema the arguments only have to be a mapping.

    Example:
        ```python
        args = validate_arguments(Schema, {"query": "books"})
        ```
    """
    if schema is None:
        if not isinstance(arguments, Mapping):
            raise InputSchemaError(
                f"{SCHEMA_MISMATCH_MESSAGE}: tool input must be an object",
                raw_input=_raw_input(arguments),
            )
        return dict(arguments)
    try:
        model = schema.model_validate(arguments)
    except ValidationError as exc:
        raise InputSchemaError(
            f"{SCHEMA_MISMATCH_MESSAGE}: {_summarize(exc)}",
            raw_input=_raw_input(arguments),
        ) from exc
    return model.model_dump(mode="json")
