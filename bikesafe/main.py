"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bikesafe.config import settings
from bikesafe.api.v1.router import api_router
from bikesafe.middleware import RequestLoggingMiddleware, setup_logging
from bikesafe.core.exceptions import register_exception_handlers
from bikesafe.services.routing.engine import routing_engine


# Setup logging early
setup_logging()
logger = logging.getLogger(__name__)


def validate_startup_settings() -> None:
    """
    Validate configuration at startup.
    Exits with error in production if requirements are not met.
    """
    errors = settings.validate_production_settings()

    if errors:
        logger.error("=" * 60)
        logger.error("CONFIGURATION ERRORS")
        logger.error("=" * 60)
        for error in errors:
            logger.error(f"  - {error}")
        logger.error("=" * 60)

        if settings.is_production():
            logger.critical("Refusing to start in production with invalid configuration!")
            sys.exit(1)

    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Routing provider: {settings.directions_url}")
    logger.info(f"Provider timeout: {settings.provider_timeout_seconds}s")
    logger.info(f"Debug Mode: {settings.debug}")

    if not settings.ors_api_key:
        logger.warning(
            "ORS_API_KEY is not set; route selection will return 503 until it is configured."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    validate_startup_settings()
    logger.info(f"{settings.app_name} started successfully")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await routing_engine.close()
    logger.info("Routing provider client closed")


app = FastAPI(
    title=settings.app_name,
    description="""
Cycling route selection API with segment-level risk analysis.

`POST /api/v1/routes/select` returns exactly three labeled routes
(Shortest, Safest, Long & Scenic or Alternate). The analysis endpoints
classify a route into low/med/high risk segments and compute distance,
elevation and ETA metrics.

## Error Responses

All errors follow a consistent format:
```json
{
  "error": {
    "code": "ERROR_CODE",
    "message": "Human-readable message",
    "request_id": "abc123"
  }
}
```
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production() else None,
    redoc_url="/redoc" if not settings.is_production() else None,
    openapi_url="/openapi.json" if not settings.is_production() else None,
)

# Exception handlers are registered before middleware
register_exception_handlers(app)

# First added = last executed
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=["X-Request-ID"],
    max_age=600,
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint with API information.
    """
    response = {
        "name": settings.app_name,
        "version": "1.0.0",
        "health": "/health",
    }

    if not settings.is_production():
        response["docs"] = "/docs"
        response["redoc"] = "/redoc"

    return response
