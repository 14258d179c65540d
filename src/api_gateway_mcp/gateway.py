"""Invocation router shared by the MCP and HTTP transports."""

import json
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

import structlog
from mcp.types import Tool

from .client import UpstreamClient
from .config import GatewaySettings, load_api_configs
from .discovery.api_registry import ApiRegistry, RegistrationOutcome
from .discovery.catalog import Catalog, CatalogCompiler, DynamicTool
from .discovery.dispatcher import Dispatcher
from .discovery.meta_tools import FixedTool, MetaTools
from .discovery.openapi_parser import SpecLoader
from .errors import GatewayError
from .models.schemas import ApiConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ToolResult:
    """Text returned to the caller; ``error`` is set when the call failed."""

    text: str
    error: Optional[Exception] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class ApiGateway:
    """Owns the registry, catalog and dispatcher for one process."""

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        registry: Optional[ApiRegistry] = None,
        client: Optional[UpstreamClient] = None,
        api_configs: Optional[Iterable[ApiConfig]] = None,
    ):
        self.settings = settings or GatewaySettings()
        self.registry = registry or ApiRegistry(
            SpecLoader(timeout=self.settings.spec_timeout)
        )
        self.client = client or UpstreamClient(timeout=self.settings.request_timeout)
        self.compiler = CatalogCompiler()
        self.dispatcher = Dispatcher(self.registry, self.client)
        self.meta_tools = MetaTools(self.registry, self.dispatcher)

        self._api_configs = list(api_configs) if api_configs is not None else None
        self._catalog: Optional[Catalog] = None
        self._started = False

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(
        self, configs: Optional[Iterable[ApiConfig]] = None
    ) -> List[RegistrationOutcome]:
        """Register the configured APIs and compile the first catalog."""
        if self._started:
            return []
        self._started = True

        if configs is None:
            configs = self._api_configs
        if configs is None:
            configs = load_api_configs()
        configs = list(configs)
        if not configs:
            logger.warning("No APIs configured. Please check environment variables.")

        outcomes = await self.registry.register_all(configs)

        catalog = self._compile()
        for name, reason in catalog.degraded:
            logger.warning("Tool schema degraded to empty", tool=name, error=reason)
        for name in catalog.non_reversible:
            logger.warning(
                "Tool name does not map back to its path; using recorded path",
                tool=name,
            )
        logger.info(
            "Gateway started",
            apis=len(self.registry),
            tools=len(catalog),
        )
        return outcomes

    @property
    def started(self) -> bool:
        return self._started

    async def close(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def _compile(self) -> Catalog:
        self._catalog = self.compiler.compile(self.registry)
        return self._catalog

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            return self._compile()
        return self._catalog

    def list_tools(self) -> List[Tool]:
        return self._compile().tools

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def invoke(
        self,
        tool_name: str,
        arguments: Optional[Mapping[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> ToolResult:
        """Run one tool call; failures come back as an error result.

        *timeout* overrides the configured upstream request timeout for this
        call only.
        """
        arguments = arguments or {}
        try:
            logger.info("call_tool", tool=tool_name)
            target = self.catalog.resolve(tool_name).target

            if isinstance(target, FixedTool):
                text = await self.meta_tools.call_tool(
                    target, arguments, timeout=timeout
                )
            elif isinstance(target, DynamicTool):
                result = await self.dispatcher.dispatch_dynamic(
                    target, arguments, timeout=timeout
                )
                text = json.dumps(result, indent=2, default=str)
            else:
                raise TypeError(f"Unexpected tool target: {target!r}")
            return ToolResult(text=text)

        except GatewayError as e:
            logger.error("Tool call failed", tool=tool_name, error=str(e))
            return ToolResult(text=f"Error: {e}", error=e)
        except Exception as e:
            logger.error("Unexpected error", tool=tool_name, error=str(e), exc_info=True)
            return ToolResult(text=f"Error: {e}", error=e)

    def get_api_info(self, api_name: Optional[str] = None) -> str:
        return self.meta_tools.get_api_info(api_name)

    async def execute_api(
        self, arguments: Mapping[str, Any], *, timeout: Optional[float] = None
    ) -> Any:
        """Generic execute used by the HTTP surface; returns the raw body."""
        return await self.meta_tools.execute_api(arguments, timeout=timeout)
