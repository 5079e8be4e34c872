"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from docstore.api.document_stores import router as document_stores_router
from docstore.api.errors import register_exception_handlers
from docstore.api.health import VERSION
from docstore.api.health import router as health_router
from docstore.api.locks import StoreLockRegistry
from docstore.config import Settings
from docstore.database import create_engine, ensure_database_dir, init_schema
from docstore.filesystem.storage_manager import StorageManager
from docstore.services.document_store_service import DocumentStoreService
from docstore.services.splitter_gateway import LoaderSplitterGateway

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

DEV_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:8000"]


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stdout,
        force=True,
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)
    # Splitters warn on every oversized chunk
    logging.getLogger("langchain_text_splitters").setLevel(logging.ERROR)


def build_document_store_service(settings: Settings) -> DocumentStoreService:
    """Wire the sync engine to its storage and splitter collaborators."""
    storage = StorageManager(storage_dir=settings.storage_dir)
    storage.datasource_root.mkdir(parents=True, exist_ok=True)
    return DocumentStoreService(
        storage=storage,
        splitter=LoaderSplitterGateway(),
        purge_replaced_chunks=settings.purge_replaced_chunks,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Open the database and storage on startup, dispose the engine on shutdown."""
    settings: Settings = app.state.settings
    _configure_logging(settings.debug)
    logger.info("Starting docstore %s (debug=%s)", VERSION, settings.debug)

    db_path = ensure_database_dir(settings.database_url)
    try:
        engine, app.state.session_factory = create_engine(settings)
        app.state.engine = engine
        await init_schema(engine)
    except Exception as exc:
        logger.critical("Database setup failed for %s: %s", db_path or settings.database_url, exc)
        raise

    try:
        app.state.document_store_service = build_document_store_service(settings)
    except OSError as exc:
        logger.critical("Storage root %s is not usable: %s", settings.storage_dir, exc)
        await engine.dispose()
        raise

    yield

    try:
        await engine.dispose()
    except Exception as exc:
        logger.error("Error during engine disposal: %s", exc, exc_info=True)
    logger.info("docstore stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; routes, middleware and handlers are installed here."""
    settings = settings or Settings()
    docs_enabled = settings.debug or settings.expose_docs

    app = FastAPI(
        title="docstore",
        description="Document stores with chunked, queryable files",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings
    app.state.store_locks = StoreLockRegistry()

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or (DEV_CORS_ORIGINS if settings.debug else []),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(document_stores_router)
    register_exception_handlers(app)
    return app


app = create_app()


def cli_entry() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "docstore.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
