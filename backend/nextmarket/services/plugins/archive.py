"""
NPM Package Archive Parsing

Reads a gzip-compressed tarball as produced by ``npm pack`` and extracts the
three entries the marketplace cares about: ``package.json``, the README and
(only when the manifest declares one) the icon file. Nothing is written to
disk; the archive is consumed as a stream.
"""

import json
import logging
import posixpath
import tarfile
import zlib
from dataclasses import dataclass
from typing import IO, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ParseError, SchemaError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"
README_FILENAMES = {"readme.md"}
PACKAGE_PREFIX = "package/"
ICON_EXTENSIONS = {".png", ".jpg", ".jpeg", ".svg", ".gif", ".ico", ".webp"}

# Archive bomb protection for the entries we actually read into memory
MAX_MEMBER_SIZE = 10 * 1024 * 1024
# Total of image bytes held while package.json has not been seen yet
MAX_DEFERRED_SIZE = MAX_MEMBER_SIZE


class PackageManifest(BaseModel):
    """
    The subset of package.json the marketplace reads.

    Unknown keys are ignored; npm manifests carry plenty of them.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1)
    version: str = ""
    description: str = ""
    author: Optional[Union[str, Dict[str, Any]]] = None
    keywords: List[str] = Field(default_factory=list)
    icon: str = ""
    next_market_config: Optional[Dict[str, Any]] = Field(default=None, alias="nextMarketConfig")
    backend_install_doc: str = Field(default="", alias="backendInstallDoc")
    type: str = ""

    @field_validator("version", "description", "icon", "backend_install_doc", "type", mode="before")
    @classmethod
    def null_to_empty_string(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("keywords", mode="before")
    @classmethod
    def null_to_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("icon")
    @classmethod
    def strip_relative_prefix(cls, v: str) -> str:
        return v[2:] if v.startswith("./") else v


@dataclass
class ParsedPackage:
    """Result of parsing an uploaded package archive."""

    manifest: PackageManifest
    readme: str = ""
    icon_data: Optional[bytes] = None
    icon_extension: str = ""

    def config_schema_json(self) -> str:
        """
        Serialize the nextMarketConfig sub-document to compact JSON.

        Returns "{}" when the manifest has no configuration schema.

        Raises:
            SchemaError: If the document cannot be represented as strict JSON.
        """
        if self.manifest.next_market_config is None:
            return "{}"
        try:
            return json.dumps(
                self.manifest.next_market_config,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise SchemaError(f"failed to serialize config schema: {e}") from e

    def keywords_string(self) -> str:
        """Keywords joined with commas, the form stored for substring search."""
        return ",".join(self.manifest.keywords)

    def plugin_tier(self) -> str:
        """Tier declared by the manifest; anything but "enterprise" is free."""
        if self.manifest.type == "enterprise":
            return "enterprise"
        return "free"


class PackageArchiveParser:
    """
    Parser for NPM package tarballs (.tgz).

    Example:
        >>> parser = PackageArchiveParser()
        >>> with open("my-plugin-1.0.0.tgz", "rb") as f:
        ...     parsed = parser.parse(f)
        >>> parsed.manifest.name
        'my-plugin'
    """

    def parse(self, stream: IO[bytes]) -> ParsedPackage:
        """
        Parse a gzip-compressed tar stream.

        Args:
            stream: Readable binary stream positioned at the start of the archive

        Returns:
            ParsedPackage with manifest, README text and optional icon

        Raises:
            ParseError: Invalid gzip data, corrupt tar, missing or malformed package.json
        """
        manifest: Optional[PackageManifest] = None
        readme = ""
        icon_data: Optional[bytes] = None
        icon_extension = ""
        # Image files seen before package.json; the declared icon name is unknown until then
        deferred_images: Dict[str, bytes] = {}
        deferred_size = 0

        try:
            with tarfile.open(fileobj=stream, mode="r|gz") as tar:
                for member in tar:
                    if not member.isfile():
                        continue

                    filename = member.name
                    if filename.startswith(PACKAGE_PREFIX):
                        filename = filename[len(PACKAGE_PREFIX):]

                    if filename == MANIFEST_FILENAME:
                        manifest = self._parse_manifest(self._read_member(tar, member))
                    elif filename.lower() in README_FILENAMES:
                        readme = self._read_member(tar, member).decode("utf-8", errors="replace")
                    elif manifest is not None:
                        if manifest.icon and filename == manifest.icon:
                            icon_data = self._read_member(tar, member)
                            icon_extension = posixpath.splitext(filename)[1]
                    elif posixpath.splitext(filename)[1].lower() in ICON_EXTENSIONS:
                        deferred_size += member.size
                        if deferred_size > MAX_DEFERRED_SIZE:
                            raise ParseError(
                                "too many image bytes before package.json",
                                details={"limit": MAX_DEFERRED_SIZE},
                            )
                        deferred_images[filename] = self._read_member(tar, member)

        except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
            raise ParseError(f"failed to read package archive: {e}") from e

        if manifest is None:
            raise ParseError("package.json not found in archive")

        if icon_data is None and manifest.icon and manifest.icon in deferred_images:
            icon_data = deferred_images[manifest.icon]
            icon_extension = posixpath.splitext(manifest.icon)[1]

        logger.debug(
            f"Parsed package archive: readme={bool(readme)}, icon={icon_data is not None}"
        )

        return ParsedPackage(
            manifest=manifest,
            readme=readme,
            icon_data=icon_data,
            icon_extension=icon_extension,
        )

    def _read_member(self, tar: tarfile.TarFile, member: tarfile.TarInfo) -> bytes:
        if member.size > MAX_MEMBER_SIZE:
            raise ParseError(
                f"archive entry too large: {member.name} ({member.size} bytes)",
                details={"entry": member.name, "size": member.size},
            )
        fileobj = tar.extractfile(member)
        if fileobj is None:
            raise ParseError(f"failed to read archive entry: {member.name}")
        return fileobj.read()

    def _parse_manifest(self, data: bytes) -> PackageManifest:
        try:
            document = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ParseError(f"failed to parse package.json: {e}") from e

        if not isinstance(document, dict):
            raise ParseError("failed to parse package.json: top level must be an object")

        try:
            return PackageManifest.model_validate(document)
        except PydanticValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise ParseError(
                f"failed to parse package.json: invalid fields {', '.join(fields)}",
                details={"fields": fields},
            ) from e
