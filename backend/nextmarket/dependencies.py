"""
FastAPI dependencies

Components are built once in the application lifespan and kept on
``app.state``; these helpers hand them to request handlers.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .config import Settings
from .database import get_db
from .services.plugins.catalog import PluginCatalogService
from .services.plugins.config_schema import PluginConfigService
from .services.plugins.ingestion import PluginIngestionService
from .storage.base import BlobStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_publisher_id(request: Request) -> int:
    """Publisher for uploads; the default organization until authentication exists."""
    return request.app.state.default_publisher_id


def get_catalog_service(
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_app_settings),
) -> PluginCatalogService:
    return PluginCatalogService(db, blob_store, settings)


def get_ingestion_service(
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_app_settings),
) -> PluginIngestionService:
    return PluginIngestionService(db, blob_store, settings)


def get_config_service(db: Session = Depends(get_db)) -> PluginConfigService:
    return PluginConfigService(db)
