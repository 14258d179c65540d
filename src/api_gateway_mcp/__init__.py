"""MCP API Gateway: expose OpenAPI-described REST APIs as MCP tools."""

__version__ = "1.0.0"
