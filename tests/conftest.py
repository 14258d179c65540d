"""Shared fixtures for tests."""

import json
from pathlib import Path

import pytest

from api_gateway_mcp.config import GatewaySettings
from api_gateway_mcp.discovery.api_registry import ApiRegistry
from api_gateway_mcp.models.schemas import ApiConfig

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SHOP_SPEC_FILE = FIXTURES_DIR / "shop_openapi.json"
PETSTORE_SPEC_FILE = FIXTURES_DIR / "petstore_swagger.yaml"


@pytest.fixture
def shop_spec_path() -> Path:
    return SHOP_SPEC_FILE


@pytest.fixture
def petstore_spec_path() -> Path:
    return PETSTORE_SPEC_FILE


@pytest.fixture
def shop_spec() -> dict:
    """Load the OpenAPI 3 shop fixture."""
    with open(SHOP_SPEC_FILE) as f:
        return json.load(f)


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(_env_file=None)


@pytest.fixture
def shop_config() -> ApiConfig:
    return ApiConfig(
        name="shop",
        spec_location=str(SHOP_SPEC_FILE),
        headers={"X-API-Key": "secret", "Accept": "application/json"},
    )


@pytest.fixture
async def registry(shop_spec) -> ApiRegistry:
    """A registry holding the shop API, with static headers."""
    reg = ApiRegistry()
    await reg.register("shop", shop_spec, static_headers={"X-API-Key": "secret"})
    return reg
