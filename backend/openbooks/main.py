"""
OpenBooks Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires settings → DocumentStore → PhotoStore and the image
       uploader onto app.state, then registers middleware, exception
       handlers and routers.
Who:   uvicorn (`uvicorn openbooks.main:app`) and the test-suite, which
       passes its own pre-loaded store.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌─────────────────────┐  │
    │  │ Req ID   │→│ Logging  │→│ Store Ready (≤1s)   │  │
    │  └──────────┘ └──────────┘ └─────────────────────┘  │
    │                                                     │
    │  Routes: /api/auth /api/users /api/posts            │
    │          /api/admin /api/status /health /uploads    │
    │                                                     │
    │  app.state.store    → PhotoStore(DocumentStore)     │
    │  app.state.uploader → BlobUploader                  │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Start loading the aggregate in the background (seed if empty);
       requests meanwhile wait at the Store Ready gate
    Shutdown:
    1. Stop the load task if it is still running
    2. Close backend and uploader clients
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from openbooks import __version__
from openbooks.config import Settings, settings
from openbooks.exceptions import (
    AuthorizationError,
    ConfigurationError,
    FileStorageError,
    NotFoundError,
    OpenBooksError,
    StoreNotReadyError,
    ValidationError,
)
from openbooks.middleware.logging import RequestLoggingMiddleware
from openbooks.middleware.readiness import StoreReadyMiddleware
from openbooks.middleware.request_id import RequestIDMiddleware, request_id_var
from openbooks.routes import admin, auth, health, posts, users
from openbooks.services.blob_service import BlobUploader, LocalDiskUploader, build_uploader
from openbooks.services.photo_store import PhotoStore
from openbooks.storage import build_document_store

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = settings.log_level) -> None:
    """
    Configure logging once for the whole application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(
        logging.WARNING
    )


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

async def _load_store(store: PhotoStore) -> None:
    """
    Background startup load.

    A failure is logged and leaves the store not-ready, so every request
    is answered 503 until the process is restarted.
    """
    try:
        await store.load()
    except Exception as e:
        logger.error("Failed to load aggregate: %s", str(e), exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("OpenBooks Backend starting up...")

    store: PhotoStore = app.state.store
    logger.info("DB provider: %s", store.backend.provider)

    load_task: Optional[asyncio.Task] = None
    if not store.ready:
        load_task = asyncio.create_task(_load_store(store))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("OpenBooks Backend shutting down...")
    if load_task is not None and not load_task.done():
        load_task.cancel()
    await store.backend.close()
    await app.state.uploader.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int, error: str, exc: OpenBooksError, details: bool = True
) -> JSONResponse:
    content = {
        "error": error,
        "message": exc.message,
        "request_id": request_id_var.get(""),
    }
    if details and exc.context:
        content["details"] = exc.context
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy to HTTP responses.

        ValidationError     → 400
        AuthorizationError  → 403
        NotFoundError       → 404
        StoreNotReadyError  → 503
        ConfigurationError  → 500
        FileStorageError    → 500
        Exception           → 500 (transport errors land here unmodified)
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc)

    @app.exception_handler(AuthorizationError)
    async def handle_authorization_error(request: Request, exc: AuthorizationError):
        logger.warning("[%s] Authorization error: %s", request_id_var.get(""), exc.message)
        return _error_response(403, "forbidden", exc)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc, details=False)

    @app.exception_handler(StoreNotReadyError)
    async def handle_not_ready(request: Request, exc: StoreNotReadyError):
        response = _error_response(503, "store_not_ready", exc, details=False)
        response.headers["Retry-After"] = "1"
        return response

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError):
        logger.error("[%s] Configuration error: %s", request_id_var.get(""), exc.message)
        return _error_response(500, "configuration_error", exc)

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        rid = request_id_var.get("")
        logger.error("[%s] File storage error: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(500, "server_error", exc, details=False)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": str(exc) or "An unexpected error occurred.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    store: Optional[PhotoStore] = None,
    uploader: Optional[BlobUploader] = None,
    app_settings: Settings = settings,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store:        PhotoStore to serve. Built from `app_settings` when None;
                      a store that is already loaded skips the startup load.
        uploader:     Image uploader. Built from `app_settings` when None.
        app_settings: Settings used for everything built here.

    Raises:
        ConfigurationError: the configured backend or uploader is missing
                            connection parameters.
    """
    if store is None:
        store = PhotoStore(build_document_store(app_settings))
    if uploader is None:
        uploader = build_uploader(app_settings)

    app = FastAPI(
        title="OpenBooks API",
        description="Photo sharing demo: feed, uploads, likes, ratings, comments, moderation.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.uploader = uploader

    # ── Middleware (last added runs first) ────────────────────────────────
    app.add_middleware(
        StoreReadyMiddleware,
        attempts=app_settings.ready_wait_attempts,
        interval=app_settings.ready_wait_interval,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(posts.router)
    app.include_router(admin.router)
    app.include_router(health.router)

    if isinstance(uploader, LocalDiskUploader):
        app.mount("/uploads", StaticFiles(directory=str(uploader.upload_dir)), name="uploads")

    return app


def run() -> None:
    """Console entry point: serve the module-level app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "openbooks.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )


app = create_app()
