"""FastAPI application entry point.

Stonebridge API - external catalog materialization and instalment payments.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stonebridge.routes import api_router
from stonebridge.services.errors import ServiceError
from stonebridge.services.materialization_cache import reset_materialization_cache
from stonebridge.services.materializer import reset_variant_materializer
from stonebridge.services.shopify_client import close_shopify_client
from stonebridge.settings import get_settings
from stonebridge.stores.postgres import init_db, close_db, ping_db
from stonebridge.stores.redis import init_redis, close_redis

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()

    # Initialize database (skip in tests if no DB available)
    try:
        await init_db()
        await ping_db()
        logger.info("Postgres connected")
    except Exception:
        logger.exception("Postgres init failed")

    # Redis only backs the materialization cache; memory is the fallback
    if settings.materialization_cache_backend == "redis":
        try:
            await init_redis()
        except Exception:
            logger.exception("Redis init failed, using in-memory materialization cache")

    if not settings.shopify_configured:
        logger.warning("Shopify credentials missing; platform calls will return 503")

    yield

    # Shutdown
    await close_shopify_client()
    reset_variant_materializer()
    reset_materialization_cache()
    await close_redis()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="External catalog materialization and instalment payment orchestration",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        """Map service errors to their status and structured body."""
        if exc.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": str(exc) if settings.debug else "Internal server error",
                    "detail": None,
                }
            },
        )

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "stonebridge.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
