"""
FastAPI Application Factory

Creates and configures the LiveOps API application.
"""

from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from prometheus_client import make_asgi_app

from liveops.config import Settings, get_settings
from liveops.config.logging import configure_logging
from liveops.database.connection import close_database, create_engine_from_url, init_database
from liveops.database.store import SqlStore
from liveops.rpc.registry import Services, build_registry, create_services
from liveops.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from liveops.serving.api.routes import health_router, rpc_router
from liveops.serving.cache import ConfigCache

logger = structlog.get_logger(__name__)

ServicesFactory = Callable[[Settings], Awaitable[Services]]


async def create_default_services(settings: Settings) -> Services:
    """
    Services over the configured database.

    If the database is unreachable at startup the service still comes up,
    reporting itself unhealthy until the store answers.
    """
    try:
        engine = await init_database(create_tables=settings.database.create_tables)
        closer = close_database
    except Exception as e:
        logger.warning("Database init failed", error=str(e))
        engine = create_engine_from_url(settings.database.async_url, echo=settings.database.echo)
        closer = engine.dispose

    services = create_services(
        SqlStore(engine),
        ConfigCache(ttl_seconds=settings.cache.ttl_seconds),
        max_batch_size=settings.ingestion.max_batch_size,
        default_query_limit=settings.ingestion.default_events_query_limit,
        max_query_limit=settings.ingestion.max_events_query_limit,
    )
    services.closers.append(closer)
    return services


def create_api_app(
    settings: Optional[Settings] = None,
    services_factory: Optional[ServicesFactory] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Settings to use instead of the process-wide ones
        services_factory: Async builder of the service objects, awaited at startup

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()
    services_factory = services_factory or create_default_services

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()

        logger.info("Starting LiveOps API", version=settings.version, environment=settings.app_env)

        services = await services_factory(settings)
        app.state.services = services
        app.state.rpc_registry = build_registry(services)

        yield

        logger.info("Shutting down...")
        await services.aclose()

    app = FastAPI(
        title="LiveOps API",
        description="Analytics ingestion, remote config and experiment assignment",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.admin_token = settings.security.admin_token.get_secret_value()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(rpc_router, prefix="/v2", tags=["RPC"])

    # Prometheus scrape endpoint
    app.mount("/metrics", make_asgi_app())

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "LiveOps API",
            "version": settings.version,
            "environment": settings.app_env,
            "rpcs": app.state.rpc_registry.rpc_ids,
        }

    return app
