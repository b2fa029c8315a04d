"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from multicloud.api.middleware import LoggingMiddleware, RequestContextMiddleware, get_request_id
from multicloud.api.routes import router as api_router
from multicloud.core.config import Settings, get_settings
from multicloud.core.exceptions import (
    BackendConnectionError,
    FallbackExhausted,
    GatewayError,
    ProviderError,
    SigningFailed,
    UnknownBackend,
    ValidationError,
)
from multicloud.core.logging import configure_logging
from multicloud.services.gateway import build_gateway

logger = structlog.get_logger(__name__)

ERROR_STATUS: dict[type[GatewayError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    UnknownBackend: status.HTTP_422_UNPROCESSABLE_ENTITY,
    BackendConnectionError: status.HTTP_503_SERVICE_UNAVAILABLE,
    SigningFailed: status.HTTP_502_BAD_GATEWAY,
    ProviderError: status.HTTP_502_BAD_GATEWAY,
    FallbackExhausted: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: GatewayError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    logger.info("Gateway starting", default_backend=app.state.gateway.registry.default)

    yield

    # Shutdown
    await app.state.gateway.close()
    logger.info("Gateway stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.settings = settings
    app.state.gateway = build_gateway(settings)

    # Middleware (order matters - last added is outermost)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)

    # Routes
    app.include_router(api_router, prefix="/api")

    # Exception handlers
    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError):
        """Map gateway errors to JSON responses."""
        code = status_for(exc)
        if code >= 500:
            logger.warning("Gateway request failed", error_kind=exc.kind.value, error=exc.message)
        content = exc.to_dict()
        request_id = get_request_id()
        if request_id:
            content["request_id"] = request_id
        return JSONResponse(status_code=code, content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error_kind": "internal_server_error",
                "message": str(exc) if settings.debug else "An error occurred",
            },
        )

    # Health checks
    @app.get("/health")
    async def health_check():
        """Quick health check endpoint (for load balancers)."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/health/detailed")
    async def health_check_detailed():
        """
        Detailed health check with component status.

        Runs a connection test against every enabled backend, plus Redis
        when it backs the usage cache.
        """
        from multicloud.utils.health import HealthChecker, check_backend, check_redis

        gateway = app.state.gateway
        checker = HealthChecker(
            version=settings.app_version,
            environment=settings.environment,
            timeout=settings.usage.timeout,
        )

        for name in gateway.registry.names():
            checker.add_check(f"storage.{name}", lambda name=name: check_backend(gateway, name))

        if settings.cache.enabled and settings.cache.backend == "redis":
            checker.add_check("redis", lambda: check_redis(settings.cache.redis_url))

        health = await checker.run()
        status_code = 200 if health.status.value != "unhealthy" else 503
        return JSONResponse(content=health.to_dict(), status_code=status_code)

    return app


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "multicloud.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    run()
