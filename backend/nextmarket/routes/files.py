"""
File API Routes

Serves plugin icons from the blob store.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ..dependencies import get_catalog_service
from ..services.plugins.catalog import PluginCatalogService

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{filename:path}", response_class=Response)
def get_file(filename: str, catalog: PluginCatalogService = Depends(get_catalog_service)):
    """Icon bytes for ``/files/{name}{ext}``, cached for a day."""
    data, content_type = catalog.get_icon(filename)
    return Response(content=data, media_type=content_type, headers={"Cache-Control": "public, max-age=86400"})
