"""Tests for discovery.meta_tools."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from api_gateway_mcp.discovery.api_registry import ApiRegistry
from api_gateway_mcp.discovery.meta_tools import (
    INFO_SEPARATOR,
    META_TOOL_NAMES,
    FixedTool,
    MetaTools,
)
from api_gateway_mcp.errors import ApiNotFound, InvocationError


@pytest.fixture
def dispatcher():
    d = MagicMock()
    d.dispatch = AsyncMock(return_value={"id": "42", "status": "open"})
    return d


@pytest.fixture
def meta(registry, dispatcher):
    return MetaTools(registry, dispatcher)


class TestToolDefinitions:
    def test_names(self):
        assert [t.name for t in MetaTools.get_tools()] == ["get_api_info", "execute_api"]
        assert META_TOOL_NAMES == {"get_api_info", "execute_api"}

    def test_execute_api_schema(self):
        tool = MetaTools.get_tools()[1]
        assert tool.inputSchema["required"] == ["api_name", "method", "path"]
        assert tool.inputSchema["properties"]["method"]["enum"] == [
            "GET",
            "POST",
            "PUT",
            "DELETE",
            "PATCH",
        ]

    def test_get_api_info_has_no_required_args(self):
        assert "required" not in MetaTools.get_tools()[0].inputSchema


class TestGetApiInfo:
    async def test_single_api(self, meta):
        text = meta.get_api_info("shop")
        assert text.startswith(
            "# API: shop\n"
            "Base URL: https://shop.example.test/v1\n"
            "Version: 2.1.0\n\n"
            "## Endpoints:\n"
        )
        assert "\n### GET /orders/{id}\nGet order\n" in text
        assert "- id (path): Order id\n" in text
        assert "- limit (query): No description\n" in text
        assert "\n### PUT /orders/{id}\nNo description\n" in text
        assert INFO_SEPARATOR not in text

    async def test_header_parameters_listed(self, meta):
        assert "- X-Request-Id (header): No description" in meta.get_api_info("shop")

    async def test_all_apis(self, shop_spec, dispatcher):
        registry = ApiRegistry()
        await registry.register("shop", shop_spec)
        await registry.register("mirror", shop_spec, base_url_override="https://m.test")
        text = MetaTools(registry, dispatcher).get_api_info()

        blocks = text.split(INFO_SEPARATOR)
        assert len(blocks) == 3
        assert blocks[0].startswith("# API: shop\n")
        assert blocks[1].startswith("# API: mirror\nBase URL: https://m.test\n")
        assert blocks[2] == ""

    async def test_missing_version(self, dispatcher):
        registry = ApiRegistry()
        await registry.register("v", {"swagger": "2.0", "paths": {}})
        text = MetaTools(registry, dispatcher).get_api_info("v")
        assert "Base URL: \nVersion: N/A\n" in text

    async def test_unknown_api(self, meta):
        with pytest.raises(ApiNotFound):
            meta.get_api_info("nope")

    async def test_empty_registry(self, dispatcher):
        assert MetaTools(ApiRegistry(), dispatcher).get_api_info() == "No APIs registered."


class TestExecuteApi:
    async def test_forwards_to_dispatcher(self, meta, dispatcher):
        result = await meta.execute_api(
            {
                "api_name": "shop",
                "method": "GET",
                "path": "/orders/42",
                "params": {"expand": "items"},
                "headers": {"X-Trace": 1},
            }
        )
        assert result == {"id": "42", "status": "open"}
        dispatcher.dispatch.assert_awaited_once_with(
            "shop",
            "GET",
            "/orders/42",
            params={"expand": "items"},
            data=None,
            headers={"X-Trace": "1"},
            timeout=None,
        )

    @pytest.mark.parametrize(
        "arguments",
        [
            {"method": "GET", "path": "/x"},
            {"api_name": "shop", "path": "/x"},
            {"api_name": "shop", "method": "GET"},
            {"api_name": "shop", "method": "GET", "path": ""},
        ],
    )
    async def test_missing_arguments(self, meta, dispatcher, arguments):
        with pytest.raises(InvocationError, match="Missing required arguments"):
            await meta.execute_api(arguments)
        dispatcher.dispatch.assert_not_awaited()

    async def test_params_must_be_object(self, meta):
        with pytest.raises(InvocationError, match="'params' must be an object"):
            await meta.execute_api(
                {"api_name": "shop", "method": "GET", "path": "/x", "params": "a=1"}
            )


class TestCallTool:
    async def test_execute_api_serialized(self, meta):
        text = await meta.call_tool(
            FixedTool.EXECUTE_API,
            {"api_name": "shop", "method": "GET", "path": "/orders/42"},
        )
        assert json.loads(text) == {"id": "42", "status": "open"}
        assert text == json.dumps({"id": "42", "status": "open"}, indent=2)

    async def test_get_api_info_empty_name_means_all(self, meta):
        text = await meta.call_tool(FixedTool.GET_API_INFO, {"api_name": ""})
        assert text.endswith(INFO_SEPARATOR)
