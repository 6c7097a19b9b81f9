"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pixelsmith.api.routes import router
from pixelsmith.config import get_settings
from pixelsmith.imaging.fonts import FontCache
from pixelsmith.imaging.pool import ProcessingPool

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting Pixelsmith (max_concurrent=%s, batch_workers=%s, max_file_size=%s, lossy_png_downscale=%s)",
        settings.max_concurrent,
        settings.batch_workers,
        settings.max_file_size,
        settings.allow_lossy_downscale_for_lossless,
    )

    processing_pool = ProcessingPool(settings)
    app.state.processing_pool = processing_pool
    app.state.font_cache = FontCache(settings.fallback_font, settings.font_cache_size)

    logger.info("Pixelsmith ready")
    yield

    logger.info("Shutting down Pixelsmith")
    processing_pool.shutdown()
    app.state.font_cache.clear()
    logger.info("Pixelsmith shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Pixelsmith",
        description="Image resizing, format conversion, filters and watermarking",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Image-Width", "X-Image-Height", "X-Original-Size", "Content-Disposition"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("pixelsmith.main:app", host=settings.host, port=settings.port)
