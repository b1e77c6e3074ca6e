import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from starlette.middleware.gzip import GZipMiddleware

from listing_api.config import Settings, get_settings
from listing_api.api import storage_events
from listing_api.api.errors import register_exception_handlers
from listing_api.api.v1 import email, photos, properties, search
from listing_api.core.container import Services, build_services
from listing_api.middleware.events import EventDrainMiddleware
from listing_api.middleware.logging import LoggingMiddleware
from listing_api.middleware.monitoring import MonitoringMiddleware
from listing_api.middleware.request_id import RequestIDMiddleware
from listing_api.middleware.security import SecurityHeadersMiddleware
from listing_api.monitoring import metrics
from listing_api.services.health_service import get_detailed_health

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services
    await services.startup()
    logger.info(f"{services.settings.APP_NAME} started ({services.settings.ENVIRONMENT})")
    yield
    await services.shutdown()
    logger.info(f"{services.settings.APP_NAME} stopped")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
        **Listing API** - real-estate listings with photo uploads

        ## Features
            * Property listings with merge-on-update
            * Base64 photo upload to object storage
            * Thumbnails (128, 256, 512) generated in the background
            * Public search over available and visible listings
        """,
        version=settings.APP_VERSION,
        openapi_tags=[
            {"name": "properties", "description": "Listing management"},
            {"name": "photos", "description": "Photo upload and photo records"},
            {"name": "search", "description": "Public listing search"},
            {"name": "email", "description": "Contact notifications"},
            {"name": "monitoring", "description": "System monitoring"},
        ],
        docs_url="/docs",
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.services = services or build_services(settings)

    register_exception_handlers(app)

    # =====================================
    # Configure Middleware Stack
    # =====================================
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
        max_age=3600,
    )

    app.add_middleware(MonitoringMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, hsts=not settings.DEBUG)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(EventDrainMiddleware)

    # Include routers
    app.include_router(properties.router, prefix=f"{settings.API_V1_PREFIX}/properties", tags=["properties"])
    app.include_router(photos.router, prefix=f"{settings.API_V1_PREFIX}/photos", tags=["photos"])
    app.include_router(search.router, prefix=f"{settings.API_V1_PREFIX}/search", tags=["search"])
    app.include_router(email.router, prefix=f"{settings.API_V1_PREFIX}/email", tags=["email"])
    app.include_router(storage_events.router, prefix="/internal", tags=["storage"])

    # Monitoring endpoints (internal use)
    if settings.EXPOSE_METRICS:
        app.include_router(metrics.router, prefix="/internal", tags=["monitoring"])

    @app.get("/health", tags=["monitoring"])
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.APP_VERSION,
        }

    @app.get("/health/detailed", tags=["monitoring"])
    async def detailed_health_check(request: Request):
        return await get_detailed_health(request.app.state.services)

    return app


app = create_app()
