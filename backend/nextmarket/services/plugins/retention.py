"""
Version retention for published plugins.

Each plugin keeps at most ``max_versions_retention`` versions. When an upload
pushes a plugin over the limit, the lowest-precedence versions are removed
together with their artifacts.
"""

import logging
from typing import List, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...database import PluginVersion
from ...repositories.plugin_repository import PluginVersionRepository
from ...storage.base import BlobStore
from .exceptions import PersistenceError, StorageError
from .versioning import sort_by_precedence

logger = logging.getLogger(__name__)


def select_for_removal(versions: Sequence[PluginVersion], max_retained: int) -> List[PluginVersion]:
    """
    Pick the versions to drop so that ``max_retained`` remain.

    A limit of zero or less means unlimited retention.

    Returns:
        ``len(versions) - max_retained`` versions, lowest precedence first
    """
    if max_retained <= 0 or len(versions) <= max_retained:
        return []
    ordered = sort_by_precedence(
        versions,
        version_of=lambda v: v.version,
        created_at_of=lambda v: v.created_at,
    )
    return ordered[: len(versions) - max_retained]


class RetentionPruner:
    """
    Removes excess versions of a plugin.

    Records are deleted before their blobs. A record that cannot be deleted
    stops the run with PersistenceError; a blob that cannot be deleted is
    logged and left behind.
    """

    def __init__(self, db: Session, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store
        self.version_repo = PluginVersionRepository(db)

    def prune(self, plugin_id: int, max_retained: int) -> List[str]:
        """
        Enforce the retention limit for one plugin.

        Args:
            plugin_id: Plugin whose versions are checked
            max_retained: Maximum number of versions to keep

        Returns:
            Version strings that were removed, in removal order

        Raises:
            PersistenceError: If versions could not be listed or a record could not be deleted
        """
        try:
            versions = self.version_repo.list_for_plugin(plugin_id)
        except SQLAlchemyError as e:
            raise PersistenceError(
                "failed to list plugin versions", details={"plugin_id": plugin_id}
            ) from e

        doomed = select_for_removal(versions, max_retained)
        if not doomed:
            return []

        logger.info(
            f"Pruning {len(doomed)} of {len(versions)} versions for plugin {plugin_id} "
            f"(limit {max_retained})"
        )

        removed: List[str] = []
        for version in doomed:
            object_key = version.object_key
            try:
                self.version_repo.delete(version)
            except SQLAlchemyError as e:
                raise PersistenceError(
                    f"failed to delete version {version.version}",
                    details={"plugin_id": plugin_id, "version": version.version},
                ) from e
            removed.append(version.version)

            if object_key:
                try:
                    self.blob_store.delete(object_key)
                except StorageError as e:
                    logger.warning(f"Left artifact of pruned version {version.version} behind: {e.message}")

        return removed
