"""API routers mounted under /api/v1."""

from fastapi import APIRouter

from . import files, plugins

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(plugins.router)
api_router.include_router(files.router)

__all__ = ["api_router"]
