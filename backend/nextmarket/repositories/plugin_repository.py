"""
Plugin Repository

Provides plugin-specific query methods for the plugins and plugin_versions
tables. Centralizes all plugin query logic in one place.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session, selectinload

from ..database import Plugin, PluginVersion
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input is matched literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PluginRepository(BaseRepository[Plugin]):
    """
    Repository for Plugin operations.

    Provides plugin-specific query methods:
    - Find by npm package name
    - Tier-filtered and search pagination with publisher preloaded
    - Permanent deletion together with all versions

    Example:
        repo = PluginRepository(db)
        plugin = repo.find_by_package_name("my-plugin")
    """

    def __init__(self, db: Session) -> None:
        super().__init__(db, Plugin)

    def query(self, include_deleted: bool = False) -> Query:
        return super().query(include_deleted).options(selectinload(Plugin.publisher))

    def get_with_versions(self, plugin_id: int) -> Optional[Plugin]:
        """Find plugin by id with publisher and versions loaded."""
        return (
            self.query()
            .options(selectinload(Plugin.versions))
            .filter(Plugin.id == plugin_id)
            .first()
        )

    def find_by_package_name(
        self, name: str, with_versions: bool = False, include_deleted: bool = False
    ) -> Optional[Plugin]:
        """
        Find plugin by its unique npm package name.

        Args:
            name: npm package name (e.g., "@acme/weather-widget")
            with_versions: Also load the version list
            include_deleted: Also match a soft-deleted plugin; the name stays
                reserved by the unique constraint until the row is removed

        Returns:
            Plugin if found, None otherwise
        """
        q = self.query(include_deleted)
        if with_versions:
            q = q.options(selectinload(Plugin.versions))
        return q.filter(Plugin.npm_package_name == name).first()

    def list_page(self, page: int, page_size: int, plugin_type: Optional[str] = None) -> Tuple[List[Plugin], int]:
        """
        One page of plugins, optionally filtered by tier.

        Returns:
            Tuple of (plugins, total matching count)
        """
        criteria = []
        if plugin_type:
            criteria.append(Plugin.type == plugin_type)
        return self.find_with_pagination(
            *criteria, page=page, per_page=page_size, order_by=(Plugin.id,)
        )

    def search_page(self, keyword: str, page: int, page_size: int) -> Tuple[List[Plugin], int]:
        """
        Case-insensitive substring search over name, description and keywords.

        Returns:
            Tuple of (plugins, total matching count)
        """
        pattern = f"%{_escape_like(keyword.lower())}%"
        criteria = or_(
            func.lower(Plugin.npm_package_name).like(pattern, escape="\\"),
            func.lower(func.coalesce(Plugin.description, "")).like(pattern, escape="\\"),
            func.lower(func.coalesce(Plugin.keywords, "")).like(pattern, escape="\\"),
        )
        return self.find_with_pagination(criteria, page=page, per_page=page_size, order_by=(Plugin.id,))

    def delete_permanently(self, plugin_id: int) -> int:
        """
        Permanently delete a plugin and every version row, soft-deleted or not.

        Both deletes run in one transaction.

        Returns:
            Number of version rows removed
        """
        try:
            removed = (
                self.db.query(PluginVersion)
                .filter(PluginVersion.plugin_id == plugin_id)
                .delete(synchronize_session=False)
            )
            self.db.query(Plugin).filter(Plugin.id == plugin_id).delete(synchronize_session=False)
            self.db.commit()
            self.db.expire_all()
            return removed
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error deleting plugin {plugin_id}: {e}")
            raise


class PluginVersionRepository(BaseRepository[PluginVersion]):
    """
    Repository for PluginVersion operations.

    Example:
        repo = PluginVersionRepository(db)
        versions = repo.list_for_plugin(plugin.id)
    """

    def __init__(self, db: Session) -> None:
        super().__init__(db, PluginVersion)

    def find_by_version(
        self, plugin_id: int, version: str, include_deleted: bool = False
    ) -> Optional[PluginVersion]:
        """Find the version record for a (plugin, version) pair."""
        return self.find_one(
            PluginVersion.plugin_id == plugin_id,
            PluginVersion.version == version,
            include_deleted=include_deleted,
        )

    def find_for_plugin(self, plugin_id: int, version_id: int) -> Optional[PluginVersion]:
        """Find a version by id, only if it belongs to the plugin."""
        return self.find_one(PluginVersion.plugin_id == plugin_id, PluginVersion.id == version_id)

    def list_for_plugin(self, plugin_id: int, include_deleted: bool = False) -> List[PluginVersion]:
        """All versions of a plugin, newest first."""
        return self.find_many(
            PluginVersion.plugin_id == plugin_id,
            order_by=(PluginVersion.created_at.desc(), PluginVersion.id.desc()),
            include_deleted=include_deleted,
        )
