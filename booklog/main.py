# booklog/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from .catalog import JsonStore, catalog_router
from .catalog.schemas import Health
from .catalog.store import timestamp
from .config import Settings, get_settings
from .error_handlers import register_error_handlers
from .middleware import BodySizeLimitMiddleware, RequestLoggingMiddleware
from .observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store on startup; a store that cannot load stops the server."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_format)
    store = JsonStore(settings.data_file)
    await store.open()
    app.state.store = store
    logger.info("Personal Library API ready, data file %s", settings.data_file)
    yield
    await store.close()
    logger.info("Personal Library API shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Personal Library API",
        description=(
            "REST service for a personal catalogue of purchased books, "
            "stored in a single JSON file."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/health", response_model=Health)
    async def health_check() -> Health:
        return Health(ok=True, ts=timestamp())

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return "Personal Library API. See /health and /api/books"

    app.include_router(catalog_router)

    # Mounted after the API routes so they take precedence.
    if settings.public_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="public")

    return app


app = create_app()
