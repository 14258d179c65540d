"""The two fixed tools: ``get_api_info`` and ``execute_api``."""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from mcp.types import Tool

from ..errors import InvocationError
from ..models.schemas import SUPPORTED_METHODS
from .api_registry import ApiRegistry, RegisteredAPI

if TYPE_CHECKING:
    from .dispatcher import Dispatcher

INFO_SEPARATOR = "\n\n---\n\n"


class FixedTool(str, Enum):
    GET_API_INFO = "get_api_info"
    EXECUTE_API = "execute_api"


# ─── Tool definitions ────────────────────────────────────────────────

META_TOOL_DEFINITIONS: list[Tool] = [
    Tool(
        name=FixedTool.GET_API_INFO.value,
        description="Get information about available APIs and their endpoints",
        inputSchema={
            "type": "object",
            "properties": {
                "api_name": {
                    "type": "string",
                    "description": "Name of the API (optional, shows all if not provided)",
                },
            },
        },
    ),
    Tool(
        name=FixedTool.EXECUTE_API.value,
        description="Execute any API endpoint with custom parameters",
        inputSchema={
            "type": "object",
            "properties": {
                "api_name": {"type": "string", "description": "Name of the API"},
                "method": {
                    "type": "string",
                    "enum": [m.upper() for m in SUPPORTED_METHODS],
                },
                "path": {"type": "string", "description": "API endpoint path"},
                "params": {"type": "object", "description": "Query parameters"},
                "data": {"type": "object", "description": "Request body data"},
                "headers": {"type": "object", "description": "Additional headers"},
            },
            "required": ["api_name", "method", "path"],
        },
    ),
]

META_TOOL_NAMES: set[str] = {t.name for t in META_TOOL_DEFINITIONS}


class MetaTools:
    """Handles the fixed tools."""

    def __init__(self, registry: ApiRegistry, dispatcher: Dispatcher):
        self._registry = registry
        self._dispatcher = dispatcher

    @staticmethod
    def get_tools() -> list[Tool]:
        return list(META_TOOL_DEFINITIONS)

    async def call_tool(
        self,
        tool: FixedTool,
        arguments: Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> str:
        """Run a fixed tool. Returns a text string."""
        if tool is FixedTool.GET_API_INFO:
            return self.get_api_info(arguments.get("api_name") or None)
        if tool is FixedTool.EXECUTE_API:
            result = await self.execute_api(arguments, timeout=timeout)
            return json.dumps(result, indent=2, default=str)
        raise ValueError(f"Unknown meta tool: {tool}")

    # ─── Handlers ──────────────────────────────────────────────────

    def get_api_info(self, api_name: str | None = None) -> str:
        """Describe one API, or all of them separated by a horizontal rule."""
        if api_name:
            return format_api_info(self._registry.lookup(api_name))

        apis = self._registry.all()
        if not apis:
            return "No APIs registered."
        return "".join(format_api_info(api) + INFO_SEPARATOR for _, api in apis)

    async def execute_api(
        self, arguments: Mapping[str, Any], *, timeout: float | None = None
    ) -> Any:
        missing = [k for k in ("api_name", "method", "path") if not arguments.get(k)]
        if missing:
            raise InvocationError(f"Missing required arguments: {', '.join(missing)}")
        for key in ("params", "headers"):
            value = arguments.get(key)
            if value is not None and not isinstance(value, Mapping):
                raise InvocationError(f"'{key}' must be an object")

        headers = arguments.get("headers")
        return await self._dispatcher.dispatch(
            str(arguments["api_name"]),
            str(arguments["method"]),
            str(arguments["path"]),
            params=arguments.get("params"),
            data=arguments.get("data"),
            headers={str(k): str(v) for k, v in headers.items()} if headers else None,
            timeout=timeout,
        )


def format_api_info(api: RegisteredAPI) -> str:
    spec = api.specification
    info = f"# API: {api.name}\n"
    info += f"Base URL: {api.base_url}\n"
    info += f"Version: {spec.version or 'N/A'}\n\n"

    info += "## Endpoints:\n"
    for path, methods in spec.operations.items():
        for method, op in methods.items():
            info += f"\n### {method.upper()} {path}\n"
            info += f"{op.summary or 'No description'}\n"

            if op.parameters:
                info += "Parameters:\n"
                for param in op.parameters:
                    info += (
                        f"- {param.name} ({param.location}): "
                        f"{param.description or 'No description'}\n"
                    )
    return info
