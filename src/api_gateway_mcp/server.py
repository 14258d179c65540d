"""MCP API Gateway: stdio server exposing registered APIs as tools."""

import asyncio
import sys
from typing import Any, Dict, Optional

import structlog
from mcp import types
from mcp.server import Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import Tool

from . import __version__
from .config import GatewaySettings
from .gateway import ApiGateway
from .logging_config import configure_logging

logger = structlog.get_logger(__name__)

SERVER_NAME = "mcp-api-gateway"


class GatewayMCPServer:
    """MCP transport over an :class:`ApiGateway`."""

    def __init__(self, gateway: Optional[ApiGateway] = None):
        self.gateway = gateway or ApiGateway()
        self.server = Server(SERVER_NAME)

        # Register MCP handlers
        self._register_handlers()

    # ------------------------------------------------------------------
    # MCP handlers
    # ------------------------------------------------------------------

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            tools = self.gateway.list_tools()
            logger.info("list_tools", count=len(tools))
            return tools

        @self.server.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> list[types.TextContent]:
            result = await self.gateway.invoke(name, arguments or {})
            return [types.TextContent(type="text", text=result.text)]

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> None:
        await self.gateway.start()
        logger.info("Starting MCP API Gateway server")
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    InitializationOptions(
                        server_name=SERVER_NAME,
                        server_version=__version__,
                        capabilities=types.ServerCapabilities(
                            tools=types.ToolsCapability(listChanged=False),
                        ),
                    ),
                )
        finally:
            await self.gateway.close()


# ------------------------------------------------------------------
# Entry points
# ------------------------------------------------------------------


async def async_main() -> None:
    settings = GatewaySettings()
    configure_logging(settings.log_level)

    try:
        server = GatewayMCPServer(ApiGateway(settings))
        await server.run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error("Server error", error=str(e), exc_info=True)
        sys.exit(1)


def main() -> None:
    """Synchronous entry point for console script."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
