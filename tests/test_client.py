"""Tests for UpstreamClient."""

import json

import httpx
import pytest

from api_gateway_mcp.client import UpstreamClient
from api_gateway_mcp.errors import UpstreamError

URL = "https://api.example.test/items"


class TestUpstreamClient:
    async def test_request_success(self, httpx_mock):
        httpx_mock.add_response(url=URL, json={"items": [1, 2]})
        async with UpstreamClient() as client:
            result = await client.request("GET", URL)
        assert result == {"items": [1, 2]}

    async def test_text_response(self, httpx_mock):
        httpx_mock.add_response(url=URL, text="plain text")
        async with UpstreamClient() as client:
            result = await client.request("GET", URL)
        assert result == "plain text"

    async def test_query_body_and_headers_sent(self, httpx_mock):
        httpx_mock.add_response(url=f"{URL}?limit=5", method="POST", json={"ok": True})
        async with UpstreamClient() as client:
            await client.request(
                "POST",
                URL,
                params={"limit": 5},
                json={"name": "widget"},
                headers={"X-API-Key": "secret"},
            )

        request = httpx_mock.get_request()
        assert request.headers["X-API-Key"] == "secret"
        assert json.loads(request.content) == {"name": "widget"}

    async def test_4xx_uses_message_field(self, httpx_mock):
        httpx_mock.add_response(
            url=URL, status_code=403, json={"message": "Invalid token"}
        )
        async with UpstreamClient() as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.request("GET", URL)
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Invalid token"
        assert str(exc_info.value) == "API call failed: Invalid token"

    async def test_5xx_generic_message(self, httpx_mock):
        httpx_mock.add_response(url=URL, status_code=503, text="Service Unavailable")
        async with UpstreamClient() as client:
            with pytest.raises(
                UpstreamError, match="Request failed with status code 503"
            ):
                await client.request("GET", URL)

    async def test_non_string_message_ignored(self, httpx_mock):
        httpx_mock.add_response(url=URL, status_code=400, json={"message": {"code": 1}})
        async with UpstreamClient() as client:
            with pytest.raises(UpstreamError, match="status code 400"):
                await client.request("GET", URL)

    async def test_network_error(self, httpx_mock):
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"), url=URL)
        async with UpstreamClient() as client:
            with pytest.raises(UpstreamError, match="Connection refused") as exc_info:
                await client.request("GET", URL)
        assert exc_info.value.status_code is None

    async def test_timeout(self, httpx_mock):
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=URL)
        async with UpstreamClient(timeout=0.1) as client:
            with pytest.raises(UpstreamError, match="timed out"):
                await client.request("GET", URL)

    async def test_client_created_lazily_and_closed(self, httpx_mock):
        httpx_mock.add_response(url=URL, json={})
        client = UpstreamClient()
        assert client.client is None
        await client.request("GET", URL)
        assert client.client is not None
        await client.aclose()
        assert client.client is None
