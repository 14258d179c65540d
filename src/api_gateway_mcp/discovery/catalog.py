"""Compile registered APIs into an ordered catalog of MCP tools."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union

import structlog
from mcp.types import Tool

from ..errors import UnknownTool
from .api_registry import ApiRegistry
from .meta_tools import META_TOOL_DEFINITIONS, FixedTool
from .schema_deriver import derive_input_schema

logger = structlog.get_logger(__name__)

_NAME_UNSAFE = re.compile(r"[{}/]")
# "__id_" followed by "_" or the end of the name came from "/{id}"
_PLACEHOLDER = re.compile(r"__([^_]+)_(?=_|$)")


@dataclass(frozen=True)
class DynamicTool:
    """Target of a synthesized tool: one operation of one API."""

    api_name: str
    method: str
    path_template: str


ToolTarget = Union[FixedTool, DynamicTool]


@dataclass(frozen=True)
class CatalogEntry:
    tool: Tool
    target: ToolTarget


# ----------------------------------------------------------------------
# Tool naming
# ----------------------------------------------------------------------


def synthesize_tool_name(api_name: str, method: str, path: str) -> str:
    """``orders`` + ``get`` + ``/items/{id}`` → ``orders_get__items__id_``."""
    return f"{api_name}_{method.lower()}_{_NAME_UNSAFE.sub('_', path)}"


def reverse_tool_name(tool_name: str) -> DynamicTool:
    """Recover ``(api, method, path)`` from a synthesized tool name.

    The mapping is lossy: underscores in the API name or in a path segment
    cannot be told apart from replaced separators. Dispatch therefore uses
    the path template recorded on the catalog entry, not this function.
    """
    parts = tool_name.split("_", 2)
    if len(parts) < 3:
        raise UnknownTool(tool_name)
    api_name, method, remainder = parts
    path = _PLACEHOLDER.sub(r"/{\1}", remainder).replace("_", "/")
    return DynamicTool(api_name=api_name, method=method, path_template=path)


# ----------------------------------------------------------------------
# Catalog
# ----------------------------------------------------------------------


@dataclass
class Catalog:
    """Compiled tools plus the typed target each one resolves to."""

    entries: list[CatalogEntry]
    degraded: list[tuple[str, str]] = field(default_factory=list)
    non_reversible: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        # First entry wins when two operations synthesize the same name.
        self._by_name: dict[str, CatalogEntry] = {}
        for entry in self.entries:
            self._by_name.setdefault(entry.tool.name, entry)

    @property
    def tools(self) -> list[Tool]:
        return [entry.tool for entry in self.entries]

    @property
    def tool_names(self) -> list[str]:
        return [entry.tool.name for entry in self.entries]

    def resolve(self, tool_name: str) -> CatalogEntry:
        entry = self._by_name.get(tool_name)
        if entry is None:
            raise UnknownTool(tool_name)
        return entry

    def __len__(self) -> int:
        return len(self.entries)


class CatalogCompiler:
    """Builds a :class:`Catalog` from the registry.

    The fixed tools come first, then one tool per operation in registration,
    path and method order. Compiling the same registry twice yields the
    same list.
    """

    def compile(self, registry: ApiRegistry) -> Catalog:
        entries = [
            CatalogEntry(tool=tool, target=FixedTool(tool.name))
            for tool in META_TOOL_DEFINITIONS
        ]
        degraded: list[tuple[str, str]] = []
        non_reversible: list[str] = []

        for api_name, api in registry.all():
            for path, methods in api.operations.items():
                for method, op in methods.items():
                    name = synthesize_tool_name(api_name, method, path)
                    target = DynamicTool(api_name=api_name, method=method, path_template=path)

                    derived = derive_input_schema(op, method)
                    if derived.degraded:
                        logger.debug("Schema degraded", tool=name, error=derived.error)
                        degraded.append((name, derived.error))
                    if reverse_tool_name(name) != target:
                        non_reversible.append(name)

                    entries.append(
                        CatalogEntry(
                            tool=Tool(
                                name=name,
                                description=op.summary or f"{method.upper()} {path}",
                                inputSchema=derived.schema,
                            ),
                            target=target,
                        )
                    )

        logger.debug(
            "Catalog compiled",
            tool_count=len(entries),
            degraded_count=len(degraded),
        )
        return Catalog(entries=entries, degraded=degraded, non_reversible=non_reversible)
