"""Load OpenAPI / Swagger documents and parse them into operation tables."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Union
from urllib.parse import unquote, urlparse

import httpx
import structlog
import yaml

from ..errors import SchemaDerivationError, SpecParseError
from ..models.schemas import SUPPORTED_METHODS

logger = structlog.get_logger(__name__)

# Locations that become Parameter objects; Swagger 2 "body" is turned into a
# BodySpec and "formData" is ignored.
PARAMETER_LOCATIONS = ("query", "path", "header", "cookie")

_MAX_REF_DEPTH = 15


@dataclass(frozen=True)
class Parameter:
    """One declared operation parameter."""

    name: str
    location: str  # query, path, header, cookie
    required: bool = False
    description: str | None = None
    type: Any = "string"
    schema: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BodySpec:
    """The JSON request body of an operation."""

    required: bool
    media_type: str
    schema: dict[str, Any] | None


@dataclass(frozen=True)
class Operation:
    """One HTTP method on one path template."""

    summary: str | None = None
    description: str | None = None
    operation_id: str | None = None
    parameters: tuple[Parameter, ...] = ()
    request_body: BodySpec | None = None
    # Set when the definition was too malformed to parse fully.
    defect: str | None = None


# path template → lowercase method → Operation, in document order
OperationTable = dict[str, dict[str, Operation]]

SpecSource = Union[str, Mapping[str, Any]]


@dataclass(frozen=True)
class ParsedSpec:
    """A normalized API description."""

    title: str
    version: str | None
    servers: list[str]
    operations: OperationTable
    document: dict[str, Any] = field(repr=False, default_factory=dict)


class SpecLoader:
    """Reads an API description from a URL, a file or a dict and parses it."""

    def __init__(self, timeout: float = 15):
        self.timeout = timeout
        # (ref, depth, refs being expanded) -> resolved schema, per document
        self._ref_cache: dict[tuple[str, int, frozenset[str]], dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def load(self, source: SpecSource) -> ParsedSpec:
        """Fetch or read *source* and parse it."""
        document = await self._read(source)
        try:
            return self.parse_document(document)
        except SpecParseError:
            raise
        except Exception as e:
            logger.error("Unexpected error while parsing API description", error=str(e))
            raise SpecParseError(f"Malformed API description: {e!r}") from e

    def parse_document(self, document: Any) -> ParsedSpec:
        """Parse an already-loaded document (useful for testing)."""
        if not isinstance(document, Mapping):
            raise SpecParseError("API description must be a JSON/YAML object")
        if "openapi" not in document and "swagger" not in document:
            raise SpecParseError("Missing 'openapi' or 'swagger' version field")
        document = dict(document)
        self._ref_cache = {}

        info = document.get("info") or {}
        if not isinstance(info, Mapping):
            info = {}
        version = info.get("version")

        operations = self._parse_paths(document)

        logger.info(
            "Parsed API description",
            title=info.get("title", ""),
            path_count=len(operations),
            operation_count=sum(len(m) for m in operations.values()),
        )
        return ParsedSpec(
            title=str(info.get("title") or ""),
            version=str(version) if version is not None else None,
            servers=self._extract_servers(document),
            operations=operations,
            document=document,
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def _read(self, source: SpecSource) -> Any:
        if isinstance(source, Mapping):
            return source
        if not isinstance(source, str) or not source.strip():
            raise SpecParseError("No API description location given")

        parsed = urlparse(source)
        if parsed.scheme in ("http", "https"):
            text = await self._fetch(source)
        else:
            path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(source)
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise SpecParseError(f"Cannot read {source}: {e}") from e
        return _decode(text, source)

    async def _fetch(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.text
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SpecParseError(f"Failed to fetch {url}: {e}") from e

    # ------------------------------------------------------------------
    # Parse
    # ------------------------------------------------------------------

    def _parse_paths(self, document: dict[str, Any]) -> OperationTable:
        paths = document.get("paths") or {}
        if not isinstance(paths, Mapping):
            raise SpecParseError("'paths' must be an object")

        operations: OperationTable = {}
        for path, path_item in paths.items():
            path_item = self._maybe_resolve_ref(path_item, document)
            if not isinstance(path_item, Mapping):
                logger.warning("Skipping malformed path item", path=path)
                continue

            shared = path_item.get("parameters")
            methods: dict[str, Operation] = {}
            for method, raw_op in path_item.items():
                verb = str(method).lower()
                if verb not in SUPPORTED_METHODS or verb in methods:
                    continue
                methods[verb] = self._parse_operation(raw_op, shared, document)
            if methods:
                operations[str(path)] = methods
        return operations

    def _parse_operation(
        self,
        raw_op: Any,
        shared_parameters: Any,
        document: dict[str, Any],
    ) -> Operation:
        if not isinstance(raw_op, Mapping):
            return Operation(defect="operation definition is not an object")

        summary = _text(raw_op.get("summary"))
        description = _text(raw_op.get("description"))
        operation_id = _text(raw_op.get("operationId"))

        try:
            raw_params = [
                *_as_list(shared_parameters, "path-level parameters"),
                *_as_list(raw_op.get("parameters"), "parameters"),
            ]
            parameters, body = self._parse_parameters(raw_params, document)
        except SchemaDerivationError as e:
            logger.warning(
                "Malformed operation", operation_id=operation_id, error=str(e)
            )
            return Operation(
                summary=summary,
                description=description,
                operation_id=operation_id,
                defect=str(e),
            )

        if body is None:
            body = self._parse_request_body(raw_op.get("requestBody"), document)

        return Operation(
            summary=summary,
            description=description,
            operation_id=operation_id,
            parameters=parameters,
            request_body=body,
        )

    def _parse_parameters(
        self,
        raw_params: list[Any],
        document: dict[str, Any],
    ) -> tuple[tuple[Parameter, ...], BodySpec | None]:
        # Keyed by (name, location) so operation-level entries replace
        # path-level ones in place.
        merged: dict[tuple[str, str], Parameter] = {}
        body: BodySpec | None = None

        for raw in raw_params:
            raw = self._maybe_resolve_ref(raw, document)
            if not isinstance(raw, Mapping):
                raise SchemaDerivationError("parameter entry is not an object")
            name = raw.get("name")
            location = raw.get("in")
            if not name or not location:
                raise SchemaDerivationError("parameter is missing 'name' or 'in'")

            raw_schema = raw.get("schema") or {}
            if not isinstance(raw_schema, Mapping):
                raise SchemaDerivationError(f"schema of parameter '{name}' is not an object")
            schema = self._resolve_schema(raw_schema, document)

            if location == "body":
                body = BodySpec(
                    required=bool(raw.get("required", False)),
                    media_type="application/json",
                    schema=schema,
                )
                continue
            if location not in PARAMETER_LOCATIONS:
                continue

            merged[(str(name), location)] = Parameter(
                name=str(name),
                location=location,
                required=bool(raw.get("required", False)),
                description=_text(raw.get("description")),
                type=schema.get("type") or raw.get("type") or "string",
                schema=schema,
            )

        return tuple(merged.values()), body

    def _parse_request_body(
        self,
        body: Any,
        document: dict[str, Any],
    ) -> BodySpec | None:
        if body is None:
            return None
        body = self._maybe_resolve_ref(body, document)
        if not isinstance(body, Mapping):
            return None
        content = body.get("content") or {}
        if not isinstance(content, Mapping):
            return None

        for media_type, media in content.items():
            if not _is_json(str(media_type)):
                continue
            schema = media.get("schema") if isinstance(media, Mapping) else None
            return BodySpec(
                required=bool(body.get("required", False)),
                media_type=str(media_type),
                schema=(
                    self._resolve_schema(schema, document)
                    if isinstance(schema, Mapping)
                    else None
                ),
            )
        return None

    # ------------------------------------------------------------------
    # $ref resolution helpers
    # ------------------------------------------------------------------

    def _resolve_schema(
        self,
        schema: Mapping[str, Any],
        document: dict[str, Any],
        _depth: int = 0,
        _expanding: frozenset[str] = frozenset(),
    ) -> dict[str, Any]:
        """Inline local ``$ref``s.

        A ref that is already being expanded further up the chain is left
        as-is, so recursive schemas are expanded once rather than
        exponentially.
        """
        if _depth > _MAX_REF_DEPTH:
            return dict(schema)
        if "$ref" in schema:
            ref = schema["$ref"]
            if not isinstance(ref, str) or ref in _expanding:
                return dict(schema)
            resolved = _resolve_pointer(document, ref)
            if not isinstance(resolved, Mapping):
                return dict(schema)
            key = (ref, _depth, _expanding)
            if key not in self._ref_cache:
                self._ref_cache[key] = self._resolve_schema(
                    resolved, document, _depth + 1, _expanding | {ref}
                )
            return self._ref_cache[key]

        def nested(sub: Any) -> Any:
            if not isinstance(sub, Mapping):
                return sub
            return self._resolve_schema(sub, document, _depth + 1, _expanding)

        result = dict(schema)
        if isinstance(result.get("properties"), Mapping):
            result["properties"] = {
                k: nested(v) for k, v in result["properties"].items()
            }
        for key in ("items", "additionalProperties"):
            if isinstance(result.get(key), Mapping):
                result[key] = nested(result[key])
        for combo_key in ("allOf", "anyOf", "oneOf"):
            if isinstance(result.get(combo_key), list):
                result[combo_key] = [nested(s) for s in result[combo_key]]
        return result

    @staticmethod
    def _maybe_resolve_ref(obj: Any, document: dict[str, Any]) -> Any:
        for _ in range(_MAX_REF_DEPTH):
            if not (isinstance(obj, Mapping) and isinstance(obj.get("$ref"), str)):
                break
            resolved = _resolve_pointer(document, obj["$ref"])
            if resolved is None:
                break
            obj = resolved
        return obj

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_servers(document: dict[str, Any]) -> list[str]:
        servers: list[str] = []
        for entry in document.get("servers") or []:
            if isinstance(entry, Mapping) and entry.get("url"):
                servers.append(_expand_server_url(entry))

        # Swagger 2.0
        if not servers and document.get("host"):
            schemes = document.get("schemes") or ["https"]
            scheme = "https" if "https" in schemes else schemes[0]
            base_path = str(document.get("basePath") or "").rstrip("/")
            servers.append(f"{scheme}://{document['host']}{base_path}")
        return servers


def _resolve_pointer(document: Mapping[str, Any], ref: Any) -> Any:
    """Resolve a local JSON pointer such as ``#/components/schemas/Order``."""
    if not isinstance(ref, str) or not ref.startswith("#/"):
        return None
    node: Any = document
    for token in ref[2:].split("/"):
        token = unquote(token).replace("~1", "/").replace("~0", "~")
        if not isinstance(node, Mapping) or token not in node:
            return None
        node = node[token]
    return node


def _expand_server_url(server: Mapping[str, Any]) -> str:
    variables = server.get("variables")
    if not isinstance(variables, Mapping):
        variables = {}

    def _replacer(match: re.Match) -> str:
        var = variables.get(match.group(1))
        if isinstance(var, Mapping) and "default" in var:
            return str(var["default"])
        return match.group(0)

    return re.sub(r"\{([^}]+)\}", _replacer, str(server["url"]))


def _decode(text: str, source: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        pass
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecParseError(f"{source} is neither valid JSON nor YAML: {e}") from e


def _as_list(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SchemaDerivationError(f"{what} must be a list")
    return value


def _is_json(media_type: str) -> bool:
    media_type = media_type.split(";")[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None
