"""Tests for discovery.catalog."""

import pytest

from api_gateway_mcp.discovery.api_registry import ApiRegistry
from api_gateway_mcp.discovery.catalog import (
    CatalogCompiler,
    DynamicTool,
    reverse_tool_name,
    synthesize_tool_name,
)
from api_gateway_mcp.discovery.meta_tools import FixedTool
from api_gateway_mcp.errors import UnknownTool

SHOP_TOOL_NAMES = [
    "shop_get__orders",
    "shop_post__orders",
    "shop_get__orders__id_",
    "shop_put__orders__id_",
    "shop_delete__orders__id_",
    "shop_get__health",
]


def _doc(paths: dict) -> dict:
    return {"openapi": "3.0.0", "info": {"title": "T", "version": "1"}, "paths": paths}


class TestToolNames:
    @pytest.mark.parametrize(
        "api,method,path,expected",
        [
            ("orders", "get", "/items/{id}", "orders_get__items__id_"),
            ("shop", "POST", "/orders", "shop_post__orders"),
            ("gh", "get", "/repos/{owner}/{repo}", "gh_get__repos__owner___repo_"),
        ],
    )
    def test_synthesize(self, api, method, path, expected):
        assert synthesize_tool_name(api, method, path) == expected

    @pytest.mark.parametrize(
        "path",
        ["/orders", "/orders/{id}", "/repos/{owner}/{repo}", "/a/{b}/c"],
    )
    def test_reverse_round_trip(self, path):
        name = synthesize_tool_name("shop", "get", path)
        assert reverse_tool_name(name) == DynamicTool("shop", "get", path)

    def test_reverse_is_lossy_for_underscores(self):
        name = synthesize_tool_name("shop", "get", "/user_list")
        assert reverse_tool_name(name).path_template == "/user/list"

    def test_reverse_rejects_short_names(self):
        with pytest.raises(UnknownTool):
            reverse_tool_name("nounderscores")


class TestCatalogCompiler:
    async def test_fixed_tools_first(self, registry):
        catalog = CatalogCompiler().compile(registry)
        assert catalog.tool_names[:2] == ["get_api_info", "execute_api"]
        assert catalog.tool_names[2:] == SHOP_TOOL_NAMES

    async def test_empty_registry(self):
        catalog = CatalogCompiler().compile(ApiRegistry())
        assert catalog.tool_names == ["get_api_info", "execute_api"]

    async def test_deterministic(self, registry):
        compiler = CatalogCompiler()
        first = compiler.compile(registry)
        second = compiler.compile(registry)
        assert first.tools == second.tools

    async def test_descriptions(self, registry):
        catalog = CatalogCompiler().compile(registry)
        tools = {t.name: t for t in catalog.tools}
        assert tools["shop_get__orders__id_"].description == "Get order"
        assert tools["shop_put__orders__id_"].description == "PUT /orders/{id}"

    async def test_input_schema(self, registry):
        catalog = CatalogCompiler().compile(registry)
        tool = catalog.resolve("shop_get__orders__id_").tool
        assert tool.inputSchema["required"] == ["id"]
        assert set(tool.inputSchema["properties"]) == {"id", "q"}

    async def test_resolve_targets(self, registry):
        catalog = CatalogCompiler().compile(registry)
        assert catalog.resolve("execute_api").target is FixedTool.EXECUTE_API
        assert catalog.resolve("shop_delete__orders__id_").target == DynamicTool(
            api_name="shop", method="delete", path_template="/orders/{id}"
        )

    async def test_resolve_unknown(self, registry):
        catalog = CatalogCompiler().compile(registry)
        with pytest.raises(UnknownTool, match="Unknown tool: shop_patch__orders"):
            catalog.resolve("shop_patch__orders")

    async def test_degraded_operation_listed_with_empty_schema(self):
        registry = ApiRegistry()
        await registry.register(
            "api",
            _doc(
                {
                    "/broken": {"get": {"parameters": [{"in": "query"}]}},
                    "/fine": {"get": {"parameters": [{"name": "x", "in": "query"}]}},
                }
            ),
        )
        catalog = CatalogCompiler().compile(registry)

        broken = catalog.resolve("api_get__broken").tool
        assert broken.inputSchema == {"type": "object", "properties": {}, "required": []}
        assert [name for name, _ in catalog.degraded] == ["api_get__broken"]
        assert "x" in catalog.resolve("api_get__fine").tool.inputSchema["properties"]

    async def test_non_reversible_names_recorded(self):
        registry = ApiRegistry()
        await registry.register(
            "my_api",
            _doc({"/ping": {"get": {}}}),
        )
        await registry.register(
            "other",
            _doc({"/user_list": {"get": {}}, "/users/{id}": {"get": {}}}),
        )
        catalog = CatalogCompiler().compile(registry)
        assert catalog.non_reversible == ["my_api_get__ping", "other_get__user_list"]

        # Dispatch still uses the recorded path template
        target = catalog.resolve("other_get__user_list").target
        assert target.path_template == "/user_list"
        assert catalog.resolve("my_api_get__ping").target.api_name == "my_api"

    async def test_colliding_names_first_wins(self):
        registry = ApiRegistry()
        await registry.register(
            "api",
            _doc({"/a/b": {"get": {"summary": "first"}}, "/a_b": {"get": {"summary": "second"}}}),
        )
        catalog = CatalogCompiler().compile(registry)
        entry = catalog.resolve("api_get__a_b")
        assert entry.tool.description == "first"
        assert entry.target.path_template == "/a/b"
