"""FastAPI surface for the gateway: health, info, execute and Glide shortcuts."""

import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import GatewaySettings
from .errors import (
    ApiNotFound,
    GatewayError,
    InvocationError,
    PathTemplateError,
    UpstreamError,
)
from .gateway import ApiGateway
from .logging_config import configure_logging
from .models.schemas import ExecuteApiRequest, HealthResponse
from .rate_limiter import SlidingWindowRateLimiter

logger = structlog.get_logger(__name__)

_start_time = time.time()

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_response(exc: GatewayError) -> JSONResponse:
    if isinstance(exc, ApiNotFound):
        return JSONResponse({"error": str(exc)}, status_code=404)
    if isinstance(exc, (InvocationError, PathTemplateError)):
        return JSONResponse({"error": str(exc)}, status_code=400)
    if isinstance(exc, UpstreamError):
        return JSONResponse(
            {"error": str(exc), "upstream_status": exc.status_code}, status_code=502
        )
    return JSONResponse({"error": str(exc)}, status_code=500)


def create_app(
    gateway: Optional[ApiGateway] = None,
    settings: Optional[GatewaySettings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = gateway.settings if gateway else GatewaySettings()
    if gateway is None:
        gateway = ApiGateway(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not gateway.started:
            await gateway.start()
        yield
        await gateway.close()

    app = FastAPI(
        title="MCP API Gateway",
        description="HTTP access to OpenAPI-described upstream APIs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.gateway = gateway
    app.state.settings = settings
    app.state.rate_limiter = SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_ms / 1000,
    )

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if request.url.path.startswith("/api/"):
            client_id = request.client.host if request.client else "unknown"
            if not app.state.rate_limiter.check(client_id):
                logger.warning("Rate limit exceeded", client=client_id)
                return JSONResponse({"error": RATE_LIMIT_MESSAGE}, status_code=429)
        return await call_next(request)

    # Added last so it wraps the rate limiter and 429s carry CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------
    # Error handlers
    # ------------------------------------------------------------------

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        logger.error("Request failed", path=request.url.path, error=str(exc))
        return _error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                {"error": "Not found", "path": request.url.path, "timestamp": _now()},
                status_code=404,
            )
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            {"error": "Internal server error", "timestamp": _now()}, status_code=500
        )

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            timestamp=_now(),
            uptime=time.time() - _start_time,
            apis=len(gateway.registry),
        )

    @app.get("/api/info", tags=["gateway"])
    async def api_info(api_name: Optional[str] = None) -> Dict[str, Any]:
        text = gateway.get_api_info(api_name)
        return {"content": [{"type": "text", "text": text}]}

    @app.post("/api/execute", response_model=None, tags=["gateway"])
    async def execute(payload: ExecuteApiRequest) -> JSONResponse:
        result = await gateway.execute_api(payload.model_dump())
        return JSONResponse(content=result)

    app.include_router(_glide_router(gateway, settings))

    return app


def _glide_router(gateway: ApiGateway, settings: GatewaySettings) -> APIRouter:
    """Fixed Glide routes; each one only fills in arguments for execute."""
    router = APIRouter(prefix="/api/glide", tags=["glide"])

    def app_path(suffix: str = "") -> str:
        if not settings.glide_app_id:
            raise HTTPException(status_code=503, detail="GLIDE_APP_ID is not configured")
        return f"/apps/{settings.glide_app_id}{suffix}"

    async def execute(method: str, path: str, **kwargs: Any) -> JSONResponse:
        result = await gateway.execute_api(
            {"api_name": settings.glide_api_name, "method": method, "path": path, **kwargs}
        )
        return JSONResponse(content=result)

    @router.get("/app", response_model=None)
    async def get_app(request: Request) -> JSONResponse:
        return await execute("GET", app_path(), params=dict(request.query_params))

    @router.get("/tables", response_model=None)
    async def list_tables(request: Request) -> JSONResponse:
        return await execute("GET", app_path("/tables"), params=dict(request.query_params))

    @router.get("/tables/{table_id}/rows", response_model=None)
    async def list_rows(table_id: str, request: Request) -> JSONResponse:
        return await execute(
            "GET",
            app_path(f"/tables/{table_id}/rows"),
            params=dict(request.query_params),
        )

    @router.post("/tables/{table_id}/rows", response_model=None)
    async def add_rows(table_id: str, data: Any = Body(default=None)) -> JSONResponse:
        return await execute("POST", app_path(f"/tables/{table_id}/rows"), data=data)

    @router.post("/tables/{table_id}/rows/{row_id}", response_model=None)
    async def update_row(
        table_id: str, row_id: str, data: Any = Body(default=None)
    ) -> JSONResponse:
        return await execute(
            "POST", app_path(f"/tables/{table_id}/rows/{row_id}"), data=data
        )

    return router


def main() -> None:
    """Entry point for the mcp-api-gateway-http command."""
    import uvicorn

    settings = GatewaySettings()
    configure_logging(settings.log_level)
    logger.info("Starting HTTP server", host=settings.host, port=settings.port)

    try:
        uvicorn.run(
            create_app(settings=settings),
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error("Server startup failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
