"""
Plugin Catalog Service

Read access to published plugins (listing, lookup, search), artifact
downloads, icon delivery and permanent plugin deletion.
"""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import Settings
from ...database import Plugin, PluginVersion
from ...repositories.plugin_repository import PluginRepository, PluginVersionRepository
from ...storage.base import BlobStore
from ...storage.paths import icon_content_type
from ...utils.logging_security import sanitize_for_log
from .exceptions import NotFoundError, PersistenceError, StorageError

logger = logging.getLogger(__name__)


@dataclass
class DeletionReport:
    """What a plugin deletion removed."""

    plugin_id: int
    package_name: str
    versions_removed: int = 0
    blobs_deleted: int = 0
    blobs_failed: List[str] = field(default_factory=list)


class PluginCatalogService:
    """
    Catalog queries and lifecycle operations on whole plugins.

    Example:
        >>> catalog = PluginCatalogService(db, blob_store, settings)
        >>> plugins, total = catalog.search_plugins("weather", page=1, page_size=20)
    """

    def __init__(self, db: Session, blob_store: BlobStore, settings: Settings):
        self.db = db
        self.blob_store = blob_store
        self.settings = settings
        self.plugin_repo = PluginRepository(db)
        self.version_repo = PluginVersionRepository(db)

    def list_plugins(
        self, page: int = 1, page_size: int = 20, plugin_type: Optional[str] = None
    ) -> Tuple[List[Plugin], int]:
        """One page of plugins, optionally limited to a tier. Returns (plugins, total)."""
        try:
            return self.plugin_repo.list_page(page, page_size, plugin_type)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to list plugins") from e

    def get_plugin(self, plugin_id: int) -> Plugin:
        """Plugin with publisher and versions loaded."""
        try:
            plugin = self.plugin_repo.get_with_versions(plugin_id)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to load plugin") from e
        if plugin is None:
            raise NotFoundError("plugin", plugin_id)
        return plugin

    def get_plugin_by_name(self, name: str) -> Plugin:
        try:
            plugin = self.plugin_repo.find_by_package_name(name, with_versions=True)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to load plugin") from e
        if plugin is None:
            raise NotFoundError("plugin", name)
        return plugin

    def search_plugins(self, keyword: str, page: int = 1, page_size: int = 20) -> Tuple[List[Plugin], int]:
        """
        Case-insensitive substring search over package name, description and keywords.

        Returns:
            Tuple of (plugins on the page, total number of matches)
        """
        try:
            return self.plugin_repo.search_page(keyword, page, page_size)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to search plugins") from e

    def delete_plugin(self, plugin_id: int) -> DeletionReport:
        """
        Permanently delete a plugin, all of its versions and their stored files.

        Records go first, in one transaction. Each version artifact and the icon
        are then deleted from the blob store; failures there are logged and
        reported but do not undo the deletion.

        Raises:
            NotFoundError: No such plugin
            PersistenceError: The records could not be deleted
        """
        try:
            plugin = self.plugin_repo.get(plugin_id, include_deleted=True)
            versions: List[PluginVersion] = []
            if plugin is not None:
                versions = self.version_repo.list_for_plugin(plugin_id, include_deleted=True)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to load plugin") from e
        if plugin is None:
            raise NotFoundError("plugin", plugin_id)

        package_name = plugin.npm_package_name
        keys = [v.object_key for v in versions if v.object_key]
        if plugin.icon_object_key:
            keys.append(plugin.icon_object_key)

        try:
            removed = self.plugin_repo.delete_permanently(plugin_id)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to delete plugin", details={"plugin_id": plugin_id}) from e

        report = DeletionReport(plugin_id=plugin_id, package_name=package_name, versions_removed=removed)
        for key in keys:
            try:
                self.blob_store.delete(key)
                report.blobs_deleted += 1
            except StorageError as e:
                logger.warning(f"Failed to delete stored file for plugin {plugin_id}: {e.message}")
                report.blobs_failed.append(key)

        logger.info(
            f"Deleted plugin {sanitize_for_log(package_name)} (id={plugin_id}, "
            f"versions={removed}, files={report.blobs_deleted}, file_failures={len(report.blobs_failed)})"
        )
        return report

    def get_download_url(self, plugin_id: int, version: str) -> str:
        """
        Presigned artifact URL for one version; counts the download.

        Raises:
            NotFoundError: Unknown plugin or version
            StorageError: The URL could not be generated
        """
        try:
            record = self.version_repo.find_by_version(plugin_id, version)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to look up plugin version") from e
        if record is None:
            raise NotFoundError("plugin version", f"{plugin_id}@{version}")

        url = self.blob_store.presigned_download_url(record.object_key, self.settings.presign_ttl_seconds)

        try:
            self.db.query(PluginVersion).filter(PluginVersion.id == record.id).update(
                {PluginVersion.download_count: PluginVersion.download_count + 1},
                synchronize_session=False,
            )
            self.db.query(Plugin).filter(Plugin.id == plugin_id).update(
                {Plugin.download_count: Plugin.download_count + 1},
                synchronize_session=False,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Download counter update failed for plugin {plugin_id}: {e}")

        return url

    def get_icon(self, filename: str) -> Tuple[bytes, str]:
        """
        Icon bytes and content type for a file served under the files endpoint.

        Raises:
            NotFoundError: Unknown or unsafe filename
        """
        normalized = posixpath.normpath(filename)
        if not filename or normalized.startswith(("..", "/")) or normalized == ".":
            raise NotFoundError("file", filename)
        data = self.blob_store.get(f"icons/{normalized}")
        return data, icon_content_type(posixpath.splitext(normalized)[1])
