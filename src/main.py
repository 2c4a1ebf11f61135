"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import health, images
from .config.settings import Settings, get_settings
from .core.media.defaults import DefaultAssetBootstrapper
from .infrastructure.storage.client import create_storage_client

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup creates the storage client (one per app, so its cached
    session is shared by every request) and schedules the default-image
    bootstrap. Shutdown cancels a bootstrap still waiting to run and
    closes the HTTP connections.
    """
    settings: Settings = app.state.settings

    logger.info(
        "Media API starting",
        extra={"version": __version__, "mock_mode": settings.b2_mock_mode}
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        # Uploads degrade to placeholders until credentials are set
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    storage = create_storage_client(
        config=settings.storage_config(),
        mock_mode=settings.b2_mock_mode,
    )
    default_images = DefaultAssetBootstrapper(
        uploader=storage,
        search_dirs=settings.default_asset_dirs_list,
        delay_seconds=settings.default_asset_bootstrap_delay_seconds,
        public_base_url=settings.b2_public_url,
    )

    app.state.storage = storage
    app.state.default_images = default_images
    default_images.start()

    yield

    logger.info("Media API shutting down")
    await default_images.stop()
    await storage.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application. Tests pass their own
    Settings; everything else reads them from the environment.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(settings)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Image storage for the Bnusa publishing platform.

        - Upload profile photos, banners, article and content images
        - Delete images by the URL an upload returned
        - Look up the built-in default banner
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        images.router,
        prefix="/api/v1/images",
        tags=["Images"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - point at the docs."""
        return {
            "message": settings.api_title,
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. We log the full
        error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    return app


# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
