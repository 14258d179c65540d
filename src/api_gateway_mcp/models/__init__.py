"""Pydantic models for configuration records and the HTTP surface."""

from .schemas import ApiConfig, ExecuteApiRequest, HealthResponse

__all__ = ["ApiConfig", "ExecuteApiRequest", "HealthResponse"]
