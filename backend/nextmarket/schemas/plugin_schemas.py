"""
Plugin API Schemas

Pydantic models for the marketplace endpoints. Every endpoint answers with
the same envelope: ``{"code": ..., "message": ..., "data": ...}``.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Response envelope shared by all endpoints."""

    code: int = 200
    message: str = "success"
    data: Optional[T] = None


# =============================================================================
# Plugin Schemas
# =============================================================================


class PublisherResponse(BaseModel):
    """Organization that published a plugin."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class PluginVersionResponse(BaseModel):
    """A published version, without its stored configuration values."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    plugin_id: int
    version: str
    readme_content: Optional[str] = None
    config_schema_json: Optional[str] = None
    file_size: int = 0
    channel: str
    download_count: int = 0
    security_scan_result: Optional[str] = None
    created_at: datetime


class PluginResponse(BaseModel):
    """Plugin summary as shown in listings and search results."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    npm_package_name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    type: str
    visibility: str
    source: str
    latest_version: Optional[str] = None
    icon_url: Optional[str] = None
    backend_install_guide: Optional[str] = None
    upstream_url: Optional[str] = None
    max_versions_retention: int
    publisher_id: Optional[int] = None
    publisher: Optional[PublisherResponse] = None
    keywords: Optional[str] = None
    download_count: int = 0
    verified_publisher: bool = False
    created_at: datetime
    updated_at: datetime


class PluginDetailResponse(PluginResponse):
    """Plugin with its versions."""

    versions: List[PluginVersionResponse] = []


class PluginListData(BaseModel):
    """One page of plugins."""

    model_config = ConfigDict(populate_by_name=True)

    items: List[PluginResponse]
    total: int
    page: int
    page_size: int = Field(..., alias="pageSize")


# =============================================================================
# Upload / Config / Download Schemas
# =============================================================================


class UploadResultData(BaseModel):
    """Result of publishing an archive."""

    plugin: PluginResponse
    version: PluginVersionResponse
    created_plugin: bool
    pruned_versions: List[str] = []


class PluginConfigData(BaseModel):
    """Stored configuration schema and values of a version."""

    schema_: Dict[str, Any] = Field(default_factory=dict, alias="schema")
    values: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class DownloadData(BaseModel):
    """Presigned artifact URL."""

    url: str
    expires_in: int


class DeletionData(BaseModel):
    """Summary of a plugin deletion."""

    plugin_id: int
    package_name: str
    versions_removed: int
    blobs_deleted: int
    blobs_failed: List[str] = []
