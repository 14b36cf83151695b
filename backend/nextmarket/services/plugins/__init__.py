"""
Plugin marketplace services.

Public API:
    - PackageArchiveParser: reads package.json, README and icon from a .tgz
    - PluginIngestionService: publishes uploaded archives
    - RetentionPruner: enforces per-plugin version limits
    - PluginConfigService: validates and stores configuration values
    - PluginCatalogService: listing, search, downloads and deletion
"""

from .archive import PackageArchiveParser, PackageManifest, ParsedPackage
from .catalog import DeletionReport, PluginCatalogService
from .config_schema import ConfigSchema, ConfigSchemaValidator, PluginConfigService, PropertyConstraint
from .exceptions import (
    DuplicateVersionError,
    InvalidVersionError,
    NotFoundError,
    ParseError,
    PersistenceError,
    PluginError,
    SchemaError,
    SchemaMissingError,
    StorageError,
    ValidationError,
)
from .ingestion import IngestionResult, PluginIngestionService
from .retention import RetentionPruner, select_for_removal
from .versioning import compare_versions, parse_version, sort_by_precedence, validate_version

__all__ = [
    "ConfigSchema",
    "ConfigSchemaValidator",
    "DeletionReport",
    "DuplicateVersionError",
    "IngestionResult",
    "InvalidVersionError",
    "NotFoundError",
    "PackageArchiveParser",
    "PackageManifest",
    "ParseError",
    "ParsedPackage",
    "PersistenceError",
    "PluginCatalogService",
    "PluginConfigService",
    "PluginError",
    "PluginIngestionService",
    "PropertyConstraint",
    "RetentionPruner",
    "SchemaError",
    "SchemaMissingError",
    "StorageError",
    "ValidationError",
    "compare_versions",
    "parse_version",
    "select_for_removal",
    "sort_by_precedence",
    "validate_version",
]
