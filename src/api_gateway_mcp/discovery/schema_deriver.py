"""Derive tool input schemas from parsed operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from ..errors import SchemaDerivationError
from .openapi_parser import Operation

logger = structlog.get_logger(__name__)

# Only these parameter locations become tool arguments; header and cookie
# parameters are covered by static headers.
SCHEMA_LOCATIONS = ("query", "path")

BODY_METHODS = ("post", "put", "patch")

BODY_PROPERTY = "body"


@dataclass(frozen=True)
class DerivedSchema:
    """An input schema, or the empty fallback plus the reason it was used."""

    schema: dict[str, Any]
    error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


def empty_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}, "required": []}


def derive(operation: Operation, method: str) -> dict[str, Any]:
    """Build a flattened JSON Schema ``inputSchema`` for *operation*.

    Path and query parameters come first, in declaration order; for
    POST/PUT/PATCH operations with a JSON body a single ``body`` object
    property follows. When two properties share a name the first one wins.
    """
    if operation.defect:
        raise SchemaDerivationError(operation.defect)

    properties: dict[str, Any] = {}
    required: list[str] = []

    for param in operation.parameters:
        if param.location not in SCHEMA_LOCATIONS:
            continue
        if param.name in properties:
            continue
        prop: dict[str, Any] = {"type": _check_type(param.name, param.type)}
        if param.description:
            prop["description"] = param.description
        properties[param.name] = prop
        if param.required:
            required.append(param.name)

    body = operation.request_body
    if method.lower() in BODY_METHODS and body is not None and body.schema is not None:
        if BODY_PROPERTY in properties:
            logger.debug("Parameter named 'body' shadows the request body")
        else:
            properties[BODY_PROPERTY] = _body_property(body.schema)
            if body.required:
                required.append(BODY_PROPERTY)

    return {"type": "object", "properties": properties, "required": required}


def derive_input_schema(operation: Operation, method: str) -> DerivedSchema:
    """Best-effort :func:`derive`: malformed operations get an empty schema."""
    try:
        return DerivedSchema(schema=derive(operation, method))
    except SchemaDerivationError as e:
        return DerivedSchema(schema=empty_schema(), error=str(e))


def _check_type(name: str, value: Any) -> Any:
    if isinstance(value, str):
        return value
    # OpenAPI 3.1 allows a list of types
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return list(value)
    raise SchemaDerivationError(f"parameter '{name}' has an invalid type: {value!r}")


def _body_property(schema: dict[str, Any]) -> dict[str, Any]:
    """Shallow copy of the body schema's top-level properties."""
    raw_props = schema.get("properties") or {}
    if not isinstance(raw_props, dict):
        raise SchemaDerivationError("request body 'properties' must be an object")

    prop: dict[str, Any] = {
        "type": "object",
        "description": schema.get("description") or "Request body data",
        "properties": {
            name: sanitize_schema(sub) if isinstance(sub, dict) else sub
            for name, sub in raw_props.items()
        },
    }
    body_required = schema.get("required")
    if isinstance(body_required, list):
        names = [r for r in body_required if r in raw_props]
        if names:
            prop["required"] = names
    return prop


# ----------------------------------------------------------------------
# Schema sanitization
# ----------------------------------------------------------------------

# Keywords copied through unchanged.
_SCALAR_KEYWORDS = frozenset(
    {
        "type",
        "required",
        "enum",
        "const",
        "default",
        "pattern",
        "format",
        "description",
    }
)

# Bounds written as 1.0 in some documents; whole numbers become ints.
_BOUND_KEYWORDS = frozenset(
    {
        "minimum",
        "maximum",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "minItems",
        "maxItems",
        "minLength",
        "maxLength",
    }
)

_SUBSCHEMA_KEYWORDS = ("items", "additionalProperties")
_COMBINATOR_KEYWORDS = ("allOf", "anyOf", "oneOf")


def sanitize_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Reduce an OpenAPI schema object to plain JSON Schema.

    OpenAPI-only keywords (``example``, ``xml``, ``readOnly``...) are
    dropped, ``title`` fills in a missing ``description`` and
    ``nullable: true`` is rewritten as an ``anyOf`` with ``null``.
    A ``$ref`` still present here points back into a recursive schema and
    is replaced by a bare object, since tool input schemas are
    self-contained.
    """
    if "$ref" in schema:
        ref_stub: dict[str, Any] = {"type": "object"}
        text = schema.get("description") or schema.get("title")
        if isinstance(text, str):
            ref_stub["description"] = text
        return ref_stub

    result: dict[str, Any] = {}
    for key in _SCALAR_KEYWORDS.intersection(schema):
        result[key] = schema[key]

    for key in _BOUND_KEYWORDS.intersection(schema):
        bound = schema[key]
        if isinstance(bound, float) and bound.is_integer():
            bound = int(bound)
        result[key] = bound

    props = schema.get("properties")
    if isinstance(props, dict):
        result["properties"] = {name: _sanitize_any(sub) for name, sub in props.items()}
    for key in _SUBSCHEMA_KEYWORDS:
        if key in schema:
            result[key] = _sanitize_any(schema[key])
    for key in _COMBINATOR_KEYWORDS:
        if isinstance(schema.get(key), list):
            result[key] = [_sanitize_any(sub) for sub in schema[key]]

    if "description" not in result and isinstance(schema.get("title"), str):
        result["description"] = schema["title"]

    if schema.get("nullable") and "type" in result:
        result["anyOf"] = [{"type": result.pop("type")}, {"type": "null"}]

    return result


def _sanitize_any(value: Any) -> Any:
    # additionalProperties may be a bool
    return sanitize_schema(value) if isinstance(value, dict) else value
