"""
Plugin Marketplace Exceptions

Centralized exception hierarchy for the ingestion pipeline, the catalog and
configuration submission. Every exception knows the HTTP status it maps to and
whether it is the client's fault, so the web layer can render it without a
lookup table of its own.

Exception Hierarchy:
    PluginError (base)
    +-- ParseError: malformed archive or manifest
    +-- InvalidVersionError: version string is not semantic version syntax
    +-- DuplicateVersionError: (package, version) already published
    +-- NotFoundError: plugin or version does not exist
    +-- StorageError: blob store failure
    +-- PersistenceError: database failure
    +-- SchemaError: configuration schema cannot be used
    |   +-- SchemaMissingError: version has no configuration schema
    +-- ValidationError: submitted configuration violates the schema

Usage:
    from nextmarket.services.plugins.exceptions import PluginError, ValidationError

    try:
        config_service.save_plugin_config(plugin_id, version_id, values)
    except ValidationError as e:
        logger.info(f"Rejected config for field {e.field}: {e.rule}")
"""

from typing import Any, Dict, Optional


class PluginError(Exception):
    """
    Base exception for all plugin marketplace errors.

    Attributes:
        message: Human-readable error description.
        details: Additional context about the error (optional).
    """

    status_code: int = 500
    client_fault: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for API responses.

        Returns:
            Dictionary containing error type, message, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ParseError(PluginError):
    """
    Raised when an uploaded archive cannot be read.

    Covers invalid gzip data, corrupt tar structure, a missing package.json
    and a manifest that is not a JSON object of the expected shape.
    """

    status_code = 400
    client_fault = True


class InvalidVersionError(PluginError):
    """Raised when a version string is not valid semantic version syntax."""

    status_code = 400
    client_fault = True

    def __init__(self, version: str, reason: Optional[str] = None) -> None:
        self.version = version
        message = f"invalid version format: {version!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message=message, details={"version": version})


class DuplicateVersionError(PluginError):
    """Raised when a (package, version) pair has already been published."""

    status_code = 409
    client_fault = True

    def __init__(self, package_name: str, version: str) -> None:
        self.package_name = package_name
        self.version = version
        super().__init__(
            message=f"version {version} already exists",
            details={"package": package_name, "version": version},
        )


class NotFoundError(PluginError):
    """
    Raised when a requested plugin or plugin version does not exist.

    Attributes:
        resource: Kind of resource ("plugin", "plugin version", "file").
        identifier: The identifier that was looked up.
    """

    status_code = 404
    client_fault = True

    def __init__(self, resource: str, identifier: Any, message: Optional[str] = None) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message=message or f"{resource} not found",
            details={"resource": resource, "id": str(identifier)},
        )


class StorageError(PluginError):
    """
    Raised when the blob store fails.

    Infrastructure fault and possibly transient. The message shown to API
    clients is generic; the underlying error is kept in ``details`` and logs.
    """

    status_code = 502


class PersistenceError(PluginError):
    """Raised when a database operation fails."""

    status_code = 500


class SchemaError(PluginError):
    """Raised when a configuration schema cannot be serialized or interpreted."""

    status_code = 400
    client_fault = True


class SchemaMissingError(SchemaError):
    """Raised when configuration is submitted for a version without a schema."""

    def __init__(self, plugin_id: int, version_id: int) -> None:
        super().__init__(
            message="config schema not found",
            details={"plugin_id": plugin_id, "version_id": version_id},
        )


class ValidationError(PluginError):
    """
    Raised when submitted configuration values violate the stored schema.

    Only the first violation is reported.

    Attributes:
        field: Name of the offending field.
        rule: Violated rule (required, type, minLength, pattern, minimum, maximum).
    """

    status_code = 400
    client_fault = True

    def __init__(self, field: str, rule: str, message: str) -> None:
        self.field = field
        self.rule = rule
        super().__init__(message=message, details={"field": field, "rule": rule})
