"""
Next Market FastAPI Application
Plugin marketplace backend: catalog, uploads, configuration and downloads
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .database import (
    check_database_health,
    create_db_engine,
    create_session_factory,
    ensure_default_organization,
)
from .middleware.error_handling import register_exception_handlers
from .routes import api_router
from .storage import create_blob_store
from .storage.base import BlobStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    session_factory=None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use; read from the environment when omitted
        session_factory: Prebuilt SQLAlchemy session factory (tests); built from settings otherwise
        blob_store: Prebuilt blob store (tests); built from settings otherwise
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan management."""
        logger.info(f"Starting {settings.app_name} {settings.app_version}...")

        engine = None
        factory = session_factory
        if factory is None:
            engine = create_db_engine(settings)
            factory = create_session_factory(engine)
        app.state.session_factory = factory

        app.state.blob_store = blob_store or create_blob_store(settings)

        db = factory()
        try:
            org = ensure_default_organization(db, settings.default_organization_name)
            app.state.default_publisher_id = org.id
        finally:
            db.close()

        logger.info(f"{settings.app_name} started successfully")

        yield

        logger.info(f"Shutting down {settings.app_name}...")
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Plugin marketplace backend",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.default_publisher_id = settings.default_publisher_id

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health")
    def health_check(request: Request) -> JSONResponse:
        """Health check endpoint for container orchestration."""
        db_ok = check_database_health(request.app.state.session_factory)
        body = {
            "status": "healthy" if db_ok else "degraded",
            "timestamp": time.time(),
            "version": settings.app_version,
            "database": "healthy" if db_ok else "unhealthy",
        }
        return JSONResponse(status_code=200 if db_ok else 503, content=body)

    return app
