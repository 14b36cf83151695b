"""
Plugin API Routes

Catalog listing and search, archive upload, configuration values,
artifact downloads and plugin deletion.
"""

import io
import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile, status

from ..config import Settings
from ..dependencies import (
    get_app_settings,
    get_catalog_service,
    get_config_service,
    get_ingestion_service,
    get_publisher_id,
)
from ..schemas.plugin_schemas import (
    APIResponse,
    DeletionData,
    DownloadData,
    PluginConfigData,
    PluginDetailResponse,
    PluginListData,
    PluginResponse,
    PluginVersionResponse,
    UploadResultData,
)
from ..services.plugins.catalog import PluginCatalogService
from ..services.plugins.config_schema import PluginConfigService
from ..services.plugins.ingestion import PluginIngestionService
from ..utils.logging_security import sanitize_for_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plugins", tags=["plugins"])


def _page(plugins, total: int, page: int, page_size: int) -> PluginListData:
    return PluginListData(
        items=[PluginResponse.model_validate(p) for p in plugins],
        total=total,
        page=page,
        pageSize=page_size,
    )


# =============================================================================
# Catalog Endpoints
# =============================================================================


@router.get(
    "",
    response_model=APIResponse[PluginListData],
    summary="List plugins",
    description="Paginated plugin listing, optionally filtered by tier.",
)
def list_plugins(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    plugin_type: Optional[Literal["free", "enterprise"]] = Query(None, alias="type"),
    catalog: PluginCatalogService = Depends(get_catalog_service),
):
    plugins, total = catalog.list_plugins(page, page_size, plugin_type)
    return APIResponse(data=_page(plugins, total, page, page_size))


@router.get(
    "/search",
    response_model=APIResponse[PluginListData],
    summary="Search plugins",
    description="Case-insensitive substring match on package name, description and keywords.",
)
def search_plugins(
    q: str = Query(..., min_length=1, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    catalog: PluginCatalogService = Depends(get_catalog_service),
):
    plugins, total = catalog.search_plugins(q, page, page_size)
    return APIResponse(data=_page(plugins, total, page, page_size))


@router.get("/by-name/{name:path}", response_model=APIResponse[PluginDetailResponse])
def get_plugin_by_name(name: str, catalog: PluginCatalogService = Depends(get_catalog_service)):
    """Look a plugin up by npm package name; scoped names keep their slash."""
    plugin = catalog.get_plugin_by_name(name)
    return APIResponse(data=PluginDetailResponse.model_validate(plugin))


@router.get("/{plugin_id}", response_model=APIResponse[PluginDetailResponse])
def get_plugin(plugin_id: int, catalog: PluginCatalogService = Depends(get_catalog_service)):
    plugin = catalog.get_plugin(plugin_id)
    return APIResponse(data=PluginDetailResponse.model_validate(plugin))


# =============================================================================
# Upload Endpoint
# =============================================================================


@router.post(
    "/upload",
    response_model=APIResponse[UploadResultData],
    status_code=status.HTTP_201_CREATED,
    summary="Upload plugin package",
    description="Publish an npm package tarball (.tgz) as a new plugin version.",
)
def upload_plugin(
    file: UploadFile = File(..., description="npm package tarball (.tgz)"),
    ingestion: PluginIngestionService = Depends(get_ingestion_service),
    settings: Settings = Depends(get_app_settings),
    publisher_id: int = Depends(get_publisher_id),
):
    """
    Publish an uploaded package.

    The archive is parsed, its version validated, the tarball stored and a
    version record created. Versions beyond the plugin's retention limit are
    pruned afterwards.
    """
    data = file.file.read(settings.max_upload_size + 1)
    if len(data) > settings.max_upload_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"file too large, maximum size is {settings.max_upload_size // (1024 * 1024)}MB",
        )
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="uploaded file is empty")

    logger.info(f"Upload received: {sanitize_for_log(file.filename)} ({len(data)} bytes)")
    result = ingestion.upload_plugin(data, io.BytesIO(data), publisher_id)

    return APIResponse(
        code=status.HTTP_201_CREATED,
        message="plugin uploaded",
        data=UploadResultData(
            plugin=PluginResponse.model_validate(result.plugin),
            version=PluginVersionResponse.model_validate(result.version),
            created_plugin=result.created_plugin,
            pruned_versions=result.pruned_versions,
        ),
    )


# =============================================================================
# Configuration Endpoints
# =============================================================================


@router.put("/{plugin_id}/config", response_model=APIResponse[Dict[str, Any]])
def save_plugin_config(
    plugin_id: int,
    version_id: int = Query(..., ge=1),
    values: Dict[str, Any] = Body(...),
    config_service: PluginConfigService = Depends(get_config_service),
):
    """Validate configuration values against the version's schema and store them."""
    saved = config_service.save_plugin_config(plugin_id, version_id, values)
    return APIResponse(message="config saved", data=saved)


@router.get("/{plugin_id}/config", response_model=APIResponse[PluginConfigData])
def get_plugin_config(
    plugin_id: int,
    version_id: int = Query(..., ge=1),
    config_service: PluginConfigService = Depends(get_config_service),
):
    config = config_service.get_plugin_config(plugin_id, version_id)
    return APIResponse(data=PluginConfigData(schema=config["schema"], values=config["values"]))


# =============================================================================
# Download / Delete Endpoints
# =============================================================================


@router.get("/{plugin_id}/versions/{version}/download", response_model=APIResponse[DownloadData])
def download_plugin_version(
    plugin_id: int,
    version: str,
    catalog: PluginCatalogService = Depends(get_catalog_service),
    settings: Settings = Depends(get_app_settings),
):
    """Presigned URL for the version's tarball."""
    url = catalog.get_download_url(plugin_id, version)
    return APIResponse(data=DownloadData(url=url, expires_in=settings.presign_ttl_seconds))


@router.delete("/{plugin_id}", response_model=APIResponse[DeletionData])
def delete_plugin(plugin_id: int, catalog: PluginCatalogService = Depends(get_catalog_service)):
    """Permanently delete a plugin with all versions and stored files."""
    report = catalog.delete_plugin(plugin_id)
    return APIResponse(
        message="plugin deleted",
        data=DeletionData(
            plugin_id=report.plugin_id,
            package_name=report.package_name,
            versions_removed=report.versions_removed,
            blobs_deleted=report.blobs_deleted,
            blobs_failed=report.blobs_failed,
        ),
    )
