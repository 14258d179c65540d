"""Pydantic models for API configuration records and the HTTP surface."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUPPORTED_METHODS = ("get", "post", "put", "delete", "patch")


class ApiConfig(BaseModel):
    """One configured upstream API."""

    name: str = Field(description="Unique API name, used as the tool name prefix")
    spec_location: str = Field(
        description="URL or file path of the OpenAPI/Swagger document"
    )
    base_url: Optional[str] = Field(
        default=None, description="Overrides the first server URL of the document"
    )
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Static headers sent with every request"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("API name must not be empty")
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def stringify_headers(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v


class ExecuteApiRequest(BaseModel):
    """Body of ``POST /api/execute``."""

    api_name: str = Field(description="Name of the API")
    method: str = Field(description="HTTP method")
    path: str = Field(description="API endpoint path")
    params: Optional[Dict[str, Any]] = Field(
        default=None, description="Query parameters"
    )
    data: Optional[Any] = Field(default=None, description="Request body data")
    headers: Optional[Dict[str, str]] = Field(
        default=None, description="Additional headers"
    )

    model_config = ConfigDict(extra="ignore")

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        if v.lower() not in SUPPORTED_METHODS:
            valid = [m.upper() for m in SUPPORTED_METHODS]
            raise ValueError(f"method must be one of: {valid}")
        return v.upper()


class HealthResponse(BaseModel):
    status: str = Field(description="Service status")
    timestamp: str = Field(description="Current time, ISO 8601")
    uptime: float = Field(description="Seconds since the process started")
    apis: int = Field(description="Number of registered APIs")
