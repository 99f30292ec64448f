"""
FastAPI application factory for the document registry.

This module creates the FastAPI app with:
- CORS configuration for browser clients
- Registry service lifecycle management
- Versioned API routes
- Mapping from registry errors to HTTP status codes
- Structured 500 responses for storage failures
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import ServerConfig
from ..engine import RegistryService
from ..errors import (
    AlreadyExistsError,
    InvalidParamsError,
    NotAuthorizedError,
    NotFoundError,
    RegistryError,
    UnknownPermissionLevelError,
)
from ..store import StoreError, create_store
from .config import Settings
from .routes import router

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[RegistryError], int]] = [
    (NotAuthorizedError, 403),
    (NotFoundError, 404),
    (AlreadyExistsError, 409),
    (InvalidParamsError, 422),
    (UnknownPermissionLevelError, 422),
]


def status_for(exc: RegistryError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


def build_service(config: ServerConfig) -> RegistryService:
    """Create a registry service backed by the configured store."""
    return RegistryService(
        create_store(config),
        max_page_size=config.registry.max_page_size,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage registry service lifecycle.

    A service injected through create_app() is left to its owner;
    otherwise one is built from the environment and closed on shutdown.
    """
    owned = getattr(app.state, "service", None) is None
    if owned:
        app.state.service = build_service(ServerConfig.from_env())

    yield

    if owned:
        app.state.service.close()
        app.state.service = None


def create_app(
    service: RegistryService | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Pre-built registry service (tests, embedding)
        settings: HTTP settings (loaded from environment if not provided)
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Document Registry",
        description=(
            "Permission-gated metadata registry for documents, collections, "
            "versions and access grants. Content itself lives elsewhere."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service

    # CORS for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
        return JSONResponse(status_code=status_for(exc), content=exc.to_dict())

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error(
            "Storage error",
            extra={"path": request.url.path, "error_type": type(exc).__name__},
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Storage error", "error_code": "STORE_ERROR", "details": {}},
        )

    # API routes
    app.include_router(router, prefix="/api/v1")

    # Health endpoint at root
    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "docreg-server", "version": __version__}

    return app


# Default app instance (service built from the environment on startup)
app = create_app()
