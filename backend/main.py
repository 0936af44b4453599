"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from backend.api.health import router as health_router
from backend.api.manifest import router as manifest_router
from backend.config import Settings
from backend.exceptions import CatalogUnavailableError
from backend.filesystem.catalog_store import CatalogStore, ensure_data_dirs
from backend.middleware.gzip import ApiGZipMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    _configure_logging(settings.debug)
    logger.info("Starting Museo admin server (debug=%s)", settings.debug)

    try:
        ensure_data_dirs(settings)
    except Exception as exc:
        logger.critical("Failed to initialize data directories: %s.", exc)
        raise

    yield

    logger.info("Museo admin server stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    docs_enabled = settings.debug or settings.expose_docs

    app = FastAPI(
        title="Museo Sync",
        description="Catalog manifest and media server for the offline audio archive",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings
    app.state.catalog_store = CatalogStore(settings)

    app.add_middleware(ApiGZipMiddleware, minimum_size=500)

    cors_origins = settings.cors_origins if settings.cors_origins else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(manifest_router)

    # Global exception handlers: safety net for unhandled exceptions

    @app.exception_handler(CatalogUnavailableError)
    async def catalog_unavailable_handler(
        request: Request, exc: CatalogUnavailableError
    ) -> JSONResponse:
        logger.error(
            "CatalogUnavailableError in %s %s: %s", request.method, request.url.path, exc
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Catalog temporarily unavailable"},
        )

    @app.exception_handler(OSError)
    async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
        if isinstance(exc, (ConnectionError, TimeoutError)):
            raise exc
        logger.error("OSError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Storage operation failed"},
        )

    # Media referenced by manifest URLs. Directories are created in the lifespan.
    app.mount(
        "/uploads/audio",
        StaticFiles(directory=str(settings.audio_dir), check_dir=False),
        name="audio",
    )
    app.mount(
        "/uploads/covers",
        StaticFiles(directory=str(settings.covers_dir), check_dir=False),
        name="covers",
    )

    return app


app = create_app()


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "backend.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
