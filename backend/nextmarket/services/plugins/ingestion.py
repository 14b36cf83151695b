"""
Plugin Ingestion Service

Drives a single plugin upload from raw archive bytes to committed state:
parse, validate, find or create the plugin, store the artifact and icon,
record the version, move the plugin's latest pointer and prune old versions.

Failure handling:
    - Parsing, version and schema problems abort before anything is written.
    - A failed artifact upload aborts with nothing to clean up.
    - A failed icon upload is logged; the upload continues without an icon.
    - A failed version insert deletes the uploaded artifact before raising,
      unless another upload of the same version won the race for it.
    - A failed plugin update leaves the version committed.
    - Pruning failures are logged; the upload is still reported successful.
    - A plugin created for an upload that later fails is kept.
"""

import logging
from dataclasses import dataclass, field
from typing import IO, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import Settings
from ...database import (
    CHANNEL_STABLE,
    SOURCE_LOCAL,
    VISIBILITY_PUBLIC,
    Plugin,
    PluginVersion,
)
from ...repositories.plugin_repository import PluginRepository, PluginVersionRepository
from ...storage.base import BlobStore
from ...storage.paths import (
    ARTIFACT_CONTENT_TYPE,
    icon_content_type,
    icon_object_key,
    icon_public_url,
    plugin_object_key,
)
from ...utils.logging_security import sanitize_for_log
from .archive import PackageArchiveParser, ParsedPackage
from .exceptions import DuplicateVersionError, PersistenceError, PluginError, StorageError
from .retention import RetentionPruner
from .versioning import validate_version

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Outcome of a successful upload."""

    plugin: Plugin
    version: PluginVersion
    created_plugin: bool = False
    icon_url: Optional[str] = None
    pruned_versions: List[str] = field(default_factory=list)


class PluginIngestionService:
    """
    Publishes uploaded NPM package archives.

    Example:
        >>> service = PluginIngestionService(db, blob_store, settings)
        >>> result = service.upload_plugin(data, io.BytesIO(data), publisher_id=1)
        >>> result.plugin.latest_version
        '1.2.0'
    """

    def __init__(
        self,
        db: Session,
        blob_store: BlobStore,
        settings: Settings,
        parser: Optional[PackageArchiveParser] = None,
        pruner: Optional[RetentionPruner] = None,
    ):
        self.db = db
        self.blob_store = blob_store
        self.settings = settings
        self.parser = parser or PackageArchiveParser()
        self.pruner = pruner or RetentionPruner(db, blob_store)
        self.plugin_repo = PluginRepository(db)
        self.version_repo = PluginVersionRepository(db)

    def upload_plugin(self, file_data: bytes, stream: IO[bytes], publisher_id: Optional[int]) -> IngestionResult:
        """
        Publish one package archive.

        Args:
            file_data: Raw archive bytes, stored as the artifact
            stream: Readable stream over the same bytes, used for parsing
            publisher_id: Publishing organization

        Returns:
            IngestionResult with the updated plugin and the new version

        Raises:
            ParseError: Archive or manifest is malformed
            InvalidVersionError: Manifest version is not semantic version syntax
            SchemaError: Configuration schema cannot be serialized
            DuplicateVersionError: The version is already published
            StorageError: Artifact upload failed
            PersistenceError: A database operation failed
        """
        parsed = self.parser.parse(stream)
        manifest = parsed.manifest
        package_name = manifest.name
        version = validate_version(manifest.version)
        schema_json = parsed.config_schema_json()

        logger.info(
            f"Ingesting {sanitize_for_log(package_name)}@{sanitize_for_log(version)} "
            f"({len(file_data)} bytes)"
        )

        plugin, created = self._find_or_create_plugin(parsed, publisher_id)

        try:
            existing = self.version_repo.find_by_version(plugin.id, version, include_deleted=True)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to look up plugin version") from e
        if existing is not None:
            raise DuplicateVersionError(package_name, version)

        object_key = plugin_object_key(package_name, version)
        self.blob_store.put(object_key, file_data, ARTIFACT_CONTENT_TYPE)

        icon_key, icon_url = self._upload_icon(parsed)

        version_record = self._create_version(plugin, parsed, version, object_key, len(file_data), schema_json)

        plugin.latest_version = version
        if icon_url:
            plugin.icon_url = icon_url
            plugin.icon_object_key = icon_key
        if manifest.backend_install_doc:
            plugin.backend_install_guide = manifest.backend_install_doc
        try:
            self.plugin_repo.save(plugin)
        except SQLAlchemyError as e:
            logger.error(
                f"Version {version} of {sanitize_for_log(package_name)} committed but plugin update failed: {e}"
            )
            raise PersistenceError("failed to update plugin", details={"plugin_id": plugin.id}) from e

        pruned: List[str] = []
        try:
            pruned = self.pruner.prune(plugin.id, plugin.max_versions_retention)
        except PluginError as e:
            logger.warning(f"Version pruning failed for plugin {plugin.id}: {e.message}")

        logger.info(
            f"Published {sanitize_for_log(package_name)}@{version} "
            f"(plugin_id={plugin.id}, version_id={version_record.id})"
        )

        return IngestionResult(
            plugin=plugin,
            version=version_record,
            created_plugin=created,
            icon_url=icon_url,
            pruned_versions=pruned,
        )

    def _find_or_create_plugin(self, parsed: ParsedPackage, publisher_id: Optional[int]):
        manifest = parsed.manifest
        try:
            plugin = self.plugin_repo.find_by_package_name(manifest.name, include_deleted=True)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to look up plugin") from e
        if plugin is not None:
            if plugin.deleted_at is not None:
                # The name is still reserved; publishing brings the plugin back
                plugin.deleted_at = None
                logger.info(f"Restoring soft-deleted plugin {sanitize_for_log(manifest.name)} (id={plugin.id})")
            return plugin, False

        plugin = Plugin(
            npm_package_name=manifest.name,
            display_name=manifest.name,
            description=manifest.description,
            type=parsed.plugin_tier(),
            visibility=VISIBILITY_PUBLIC,
            source=SOURCE_LOCAL,
            max_versions_retention=self.settings.default_retention,
            publisher_id=publisher_id,
            keywords=parsed.keywords_string(),
        )
        try:
            plugin = self.plugin_repo.create(plugin)
        except IntegrityError:
            # Another upload created the same package first
            try:
                winner = self.plugin_repo.find_by_package_name(manifest.name, include_deleted=True)
            except SQLAlchemyError as e:
                raise PersistenceError("failed to look up plugin") from e
            if winner is None:
                raise PersistenceError("failed to create plugin")
            return winner, False
        except SQLAlchemyError as e:
            raise PersistenceError("failed to create plugin") from e

        logger.info(f"Created plugin {sanitize_for_log(manifest.name)} (id={plugin.id})")
        return plugin, True

    def _upload_icon(self, parsed: ParsedPackage):
        if parsed.icon_data is None:
            return None, None
        key = icon_object_key(parsed.manifest.name, parsed.icon_extension)
        try:
            self.blob_store.put(key, parsed.icon_data, icon_content_type(parsed.icon_extension))
        except StorageError as e:
            logger.warning(f"Icon upload skipped for {sanitize_for_log(parsed.manifest.name)}: {e.message}")
            return None, None
        return key, icon_public_url(self.settings.icon_url_prefix, key)

    def _create_version(
        self,
        plugin: Plugin,
        parsed: ParsedPackage,
        version: str,
        object_key: str,
        file_size: int,
        schema_json: str,
    ) -> PluginVersion:
        # Captured up front; a rollback expires the plugin and it may be gone
        plugin_id = plugin.id
        package_name = plugin.npm_package_name
        record = PluginVersion(
            plugin_id=plugin_id,
            version=version,
            readme_content=parsed.readme,
            config_schema_json=schema_json,
            object_key=object_key,
            file_size=file_size,
            channel=CHANNEL_STABLE,
        )
        try:
            return self.version_repo.create(record)
        except IntegrityError as e:
            if self._version_exists(plugin_id, version):
                # The concurrent winner owns the artifact at the same key
                raise DuplicateVersionError(package_name, version) from e
            self._discard_artifact(object_key)
            raise PersistenceError(
                "failed to create plugin version",
                details={"plugin_id": plugin_id, "version": version},
            ) from e
        except SQLAlchemyError as e:
            self._discard_artifact(object_key)
            raise PersistenceError(
                "failed to create plugin version",
                details={"plugin_id": plugin_id, "version": version},
            ) from e

    def _version_exists(self, plugin_id: int, version: str) -> bool:
        """Whether a constraint violation was caused by an existing (plugin, version) row."""
        try:
            return self.version_repo.find_by_version(plugin_id, version, include_deleted=True) is not None
        except SQLAlchemyError as e:
            logger.error(f"Failed to re-check version {sanitize_for_log(version)} after insert failure: {e}")
            return False

    def _discard_artifact(self, object_key: str) -> None:
        try:
            self.blob_store.delete(object_key)
        except StorageError as e:
            logger.error(f"Failed to remove orphaned artifact after version insert failure: {e.message}")
