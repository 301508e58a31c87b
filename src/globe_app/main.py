"""Meteorite Globe - filtered meteorite landing layers for a virtual globe.

Main FastAPI application.
"""

import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from loguru import logger

from globe_app.config import settings
from globe_app.routers.globe import router as globe_router
from globe_app.routers.search import router as search_router
from globe_engine.controller import Facet, FilteredLayerController
from globe_engine.feed.client import FeedClient
from globe_engine.layers import Layer, LayerManager
from globe_engine.scene import Location, install_base_layers


def configure_logging(level: str) -> None:
    """Route app logs (loguru) and engine logs (stdlib) at the same level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    )


def _on_layer_loaded(facet: Facet, layer: Layer, error: Exception | None) -> None:
    if error is not None:
        logger.warning(f"{layer.name} could not be loaded: {error}")
    else:
        logger.info(f"{layer.name}: {len(layer.features)} features ready")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging(settings.log_level)
    logger.info(f"{settings.app_name} starting (feed: {settings.feed_url})")

    http_client = httpx.AsyncClient()
    feed = FeedClient(
        base_url=settings.feed_url,
        timeout=settings.feed_timeout,
        client=http_client,
        user_agent=settings.feed_user_agent,
    )

    layers = LayerManager()
    install_base_layers(layers)
    controller = FilteredLayerController(layers, feed)
    controller.add_completion_handler(_on_layer_loaded)

    app.state.layers = layers
    app.state.controller = controller
    app.state.go_to = Location(settings.start_lat, settings.start_lng)

    if settings.load_default_filters:
        controller.load_default_filters()
        logger.info("Default filters (found / fell / all) loading")

    yield

    logger.info(f"{settings.app_name} shutting down...")
    await controller.aclose()
    await feed.aclose()


# Create FastAPI app
app = FastAPI(
    title="Meteorite Globe",
    description="Meteorite landings on a virtual globe",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(globe_router)
app.include_router(search_router)


@app.get("/", response_class=HTMLResponse)
async def root():
    """Landing page pointing at the API."""
    return HTMLResponse(
        content="""
        <html>
            <head><title>Meteorite Globe</title></head>
            <body>
                <h1>Meteorite Globe v0.1.0</h1>
                <p>The API is available under /api (docs at /docs).</p>
            </body>
        </html>
        """
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": "0.1.0",
        "system": settings.app_name,
    }


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run("globe_app.main:app", host=settings.host, port=settings.port)
