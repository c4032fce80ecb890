"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leadhub import __version__
from leadhub.config.logging import setup_logging
from leadhub.config.settings import get_settings
from leadhub.exceptions import (
    ActorNotFound,
    DistributionServiceError,
    StorageError,
    StoreUnavailable,
    TenantMismatch,
)
from leadhub.web.middleware import RequestIDMiddleware
from leadhub.web.routes.auth import router as auth_router
from leadhub.web.routes.companies import router as companies_router
from leadhub.web.routes.distribution import router as distribution_router
from leadhub.web.routes.session import router as session_router
from leadhub.web.routes.users import router as users_router

logger = structlog.get_logger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ActorNotFound)
    async def actor_not_found_handler(request: Request, exc: ActorNotFound) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": "Not authenticated"})

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(
        request: Request, exc: StoreUnavailable
    ) -> JSONResponse:
        logger.error("store_unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"detail": "Service temporarily unavailable"},
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(TenantMismatch)
    async def tenant_mismatch_handler(request: Request, exc: TenantMismatch) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": "Company switch rejected"})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(DistributionServiceError)
    async def distribution_error_handler(
        request: Request, exc: DistributionServiceError
    ) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": "Distribution service unavailable"})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create tables on startup when asked to; release the DB pool on shutdown."""
    settings = get_settings()
    if settings.use_database and settings.auto_create_tables:
        from leadhub.storage.database import init_db

        await init_db()
    logger.info("app_started", use_database=settings.use_database)
    yield
    if settings.use_database:
        from leadhub.storage.database import close_engine

        await close_engine()
    logger.info("app_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="LeadHub",
        description="Multi-tenant lead management",
        version=__version__,
        lifespan=lifespan,
    )
    _register_exception_handlers(app)

    # Middleware (order matters: last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/health")
    async def health_check() -> dict[str, object]:
        return {"status": "healthy", "version": __version__}

    app.include_router(auth_router)
    app.include_router(session_router)
    app.include_router(companies_router)
    app.include_router(distribution_router)
    app.include_router(users_router)

    logger.info("app_created")
    return app
