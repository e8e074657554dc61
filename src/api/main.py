"""
FastAPI main application.

REST API for the usage metrics engine and its result snapshots.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import time
import logging
from typing import Callable, Optional

from modules.metrics import MetricsService, UnknownDimensionError, UnknownMetricKeyError
from modules.metrics.storage import SQLAlchemyMetricStore
from modules.snapshots import SnapshotCache
from src.api.config import get_api_settings
from src.api.v1.models.responses import ErrorResponse
from src.api.v1.router import api_router
from shared.utils.logger import log_error
from src.database.connection import check_connection, close_connections, get_session

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_api_settings()


def create_application(
    metrics_service: Optional[MetricsService] = None,
    snapshot_cache: Optional[SnapshotCache] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        metrics_service: Engine to serve (defaults to one over the database)
        snapshot_cache: Snapshot cache to serve (defaults to a fresh cache)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=settings.API_TITLE,
        description=settings.API_DESCRIPTION,
        version=settings.API_VERSION,
        docs_url="/docs" if settings.ENABLE_DOCS else None,
        redoc_url="/redoc" if settings.ENABLE_DOCS else None,
        openapi_url="/openapi.json" if settings.ENABLE_DOCS else None,
    )

    # Process-owned collaborators, injected into routes via dependencies
    if metrics_service is None:
        metrics_service = MetricsService(SQLAlchemyMetricStore(get_session))
    if snapshot_cache is None:
        snapshot_cache = SnapshotCache()
    app.state.metrics_service = metrics_service
    app.state.snapshot_cache = snapshot_cache

    # Configure CORS
    if settings.ENABLE_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=settings.CORS_METHODS,
            allow_headers=settings.CORS_HEADERS,
        )

    # Add GZip compression for responses
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Add request timing middleware
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next: Callable):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response

    # Include API routers
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check():
        """
        Health check endpoint.

        Returns:
            Health status of the API
        """
        return {
            "status": "healthy",
            "version": settings.API_VERSION,
            "environment": settings.ENVIRONMENT,
            "snapshots": app.state.snapshot_cache.get_stats(),
        }

    @app.get("/health/database", tags=["health"])
    async def database_health_check():
        """Check the metric store database connection."""
        connected = await check_connection()
        return JSONResponse(
            status_code=200 if connected else 503,
            content={"status": "healthy" if connected else "unavailable"},
        )

    @app.exception_handler(UnknownDimensionError)
    async def unknown_dimension_handler(_request: Request, exc: UnknownDimensionError):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error="unknown_dimension",
                message=str(exc),
                detail={"allowed": exc.allowed},
            ).model_dump(mode="json"),
        )

    @app.exception_handler(UnknownMetricKeyError)
    async def unknown_metric_key_handler(_request: Request, exc: UnknownMetricKeyError):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error="unknown_metric_key",
                message=str(exc),
                detail={"allowed": exc.allowed},
            ).model_dump(mode="json"),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(_request: Request, exc: Exception):
        """
        Global exception handler for unhandled errors.

        Args:
            _request: FastAPI request
            exc: Exception raised

        Returns:
            JSON error response
        """
        log_error(logger, exc, "Unhandled exception", traceback=True)

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An internal server error occurred",
                "detail": str(exc) if settings.DEBUG else None
            }
        )

    # Startup event
    @app.on_event("startup")
    async def startup_event():
        """Log startup configuration."""
        logger.info(f"Starting {settings.API_TITLE} v{settings.API_VERSION}")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Breakdown dimensions: {', '.join(app.state.metrics_service.registry.names())}")

    # Shutdown event
    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown."""
        app.state.snapshot_cache.clear()
        await close_connections()
        logger.info(f"Shutting down {settings.API_TITLE}")

    return app


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
