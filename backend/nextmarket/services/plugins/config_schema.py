"""
Plugin configuration schemas and submitted configuration values.

A version's ``nextMarketConfig`` document describes the settings form the
frontend renders:

    {
        "required": ["apiKey"],
        "properties": {
            "apiKey": {"type": "string", "minLength": 8},
            "retries": {"type": "integer", "minimum": 0, "maximum": 5}
        }
    }

Submitted values are checked against it and stored on the version. The first
violation found is reported; later ones are not collected.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...database import PluginVersion
from ...repositories.plugin_repository import PluginVersionRepository
from .exceptions import (
    NotFoundError,
    PersistenceError,
    SchemaError,
    SchemaMissingError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class PropertyConstraint(BaseModel):
    """Constraints for one configuration field. Unknown keys (title, default, ...) are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Optional[str] = None
    min_length: Optional[int] = Field(default=None, alias="minLength", ge=0)
    pattern: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None


class ConfigSchema(BaseModel):
    """Top level of a configuration schema document."""

    model_config = ConfigDict(extra="allow")

    required: List[str] = Field(default_factory=list)
    properties: Dict[str, PropertyConstraint] = Field(default_factory=dict)

    @classmethod
    def from_json(cls, document: str) -> "ConfigSchema":
        """
        Parse a stored schema document.

        Raises:
            SchemaError: If the document is not a JSON object of the expected shape
        """
        try:
            data = json.loads(document)
        except json.JSONDecodeError as e:
            raise SchemaError(f"failed to parse config schema: {e}") from e
        if not isinstance(data, dict):
            raise SchemaError("failed to parse config schema: top level must be an object")
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise SchemaError(
                f"invalid config schema: {', '.join(fields)}", details={"fields": fields}
            ) from e


def _load_stored_document(document: str, label: str) -> Dict[str, Any]:
    try:
        data = json.loads(document)
    except json.JSONDecodeError as e:
        raise SchemaError(f"failed to parse stored {label}: {e}") from e
    if not isinstance(data, dict):
        raise SchemaError(f"failed to parse stored {label}: top level must be an object")
    return data


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigSchemaValidator:
    """Checks a submitted values mapping against a ConfigSchema."""

    def validate(self, schema: ConfigSchema, values: Dict[str, Any]) -> None:
        """
        Raises:
            ValidationError: On the first missing required field or violated constraint
            SchemaError: If a property's pattern is not a valid regular expression
        """
        for name in schema.required:
            if values.get(name) is None or values.get(name) == "":
                raise ValidationError(name, "required", f"field {name} is required")

        for name, value in values.items():
            constraint = schema.properties.get(name)
            if constraint is not None:
                self._check_field(name, value, constraint)

    def _check_field(self, name: str, value: Any, constraint: PropertyConstraint) -> None:
        if constraint.type == "string":
            if not isinstance(value, str):
                raise ValidationError(name, "type", f"field {name} must be a string")
            if constraint.min_length is not None and len(value) < constraint.min_length:
                raise ValidationError(
                    name,
                    "minLength",
                    f"field {name} must be at least {constraint.min_length} characters",
                )
            if constraint.pattern:
                try:
                    matched = re.search(constraint.pattern, value)
                except re.error as e:
                    raise SchemaError(
                        f"invalid pattern for field {name}: {e}", details={"field": name}
                    ) from e
                if matched is None:
                    raise ValidationError(
                        name, "pattern", f"field {name} does not match pattern {constraint.pattern}"
                    )

        elif constraint.type in ("integer", "number"):
            if not _is_number(value):
                raise ValidationError(name, "type", f"field {name} must be a number")
            if constraint.minimum is not None and value < constraint.minimum:
                raise ValidationError(
                    name, "minimum", f"field {name} must be at least {constraint.minimum:g}"
                )
            if constraint.maximum is not None and value > constraint.maximum:
                raise ValidationError(
                    name, "maximum", f"field {name} must be at most {constraint.maximum:g}"
                )

        elif constraint.type == "boolean":
            if not isinstance(value, bool):
                raise ValidationError(name, "type", f"field {name} must be a boolean")


class PluginConfigService:
    """
    Saves and loads configuration values for plugin versions.

    Example:
        >>> service = PluginConfigService(db)
        >>> service.save_plugin_config(plugin_id=1, version_id=3, values={"apiKey": "12345678"})
    """

    def __init__(self, db: Session, validator: Optional[ConfigSchemaValidator] = None):
        self.db = db
        self.validator = validator or ConfigSchemaValidator()
        self.version_repo = PluginVersionRepository(db)

    def _load_version(self, plugin_id: int, version_id: int) -> PluginVersion:
        try:
            version = self.version_repo.find_for_plugin(plugin_id, version_id)
        except SQLAlchemyError as e:
            raise PersistenceError("failed to look up plugin version") from e
        if version is None:
            raise NotFoundError("plugin version", version_id)
        return version

    def save_plugin_config(self, plugin_id: int, version_id: int, values: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate and store configuration values, replacing any stored earlier.

        Raises:
            NotFoundError: The version does not exist or belongs to another plugin
            SchemaMissingError: The version has no configuration schema
            SchemaError: The stored schema is unusable
            ValidationError: The values violate the schema
            PersistenceError: The values could not be saved
        """
        version = self._load_version(plugin_id, version_id)
        if not version.config_schema_json:
            raise SchemaMissingError(plugin_id, version_id)

        schema = ConfigSchema.from_json(version.config_schema_json)
        self.validator.validate(schema, values)

        try:
            version.config_values_json = json.dumps(values, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise SchemaError(f"failed to serialize config values: {e}") from e

        try:
            self.version_repo.save(version)
        except SQLAlchemyError as e:
            raise PersistenceError(
                "failed to save plugin config", details={"version_id": version_id}
            ) from e

        logger.info(f"Saved config for plugin {plugin_id} version {version_id} ({len(values)} fields)")
        return values

    def get_plugin_config(self, plugin_id: int, version_id: int) -> Dict[str, Any]:
        """
        Stored schema and values for a version.

        Returns:
            {"schema": {...}, "values": {...}}; both empty when nothing is stored

        Raises:
            NotFoundError: The version does not exist or belongs to another plugin
            SchemaError: A stored document is not a JSON object
        """
        version = self._load_version(plugin_id, version_id)
        schema: Dict[str, Any] = {}
        values: Dict[str, Any] = {}
        if version.config_schema_json:
            schema = _load_stored_document(version.config_schema_json, "config schema")
        if version.config_values_json:
            values = _load_stored_document(version.config_values_json, "config values")
        return {"schema": schema, "values": values}
