"""Deterministic object keys and content types for stored files."""

ARTIFACT_CONTENT_TYPE = "application/gzip"

_ICON_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".svg": "image/svg+xml",
}


def plugin_object_key(package_name: str, version: str) -> str:
    """plugins/{name}/{version}/{name}-{version}.tgz"""
    return f"plugins/{package_name}/{version}/{package_name}-{version}.tgz"


def icon_object_key(package_name: str, extension: str) -> str:
    """icons/{name}{ext}; one icon per package, replaced by newer uploads."""
    return f"icons/{package_name}{extension}"


def icon_content_type(extension: str) -> str:
    """Content type for an icon extension, PNG unless recognised otherwise."""
    return _ICON_CONTENT_TYPES.get(extension.lower(), "image/png")


def icon_public_url(url_prefix: str, object_key: str) -> str:
    """
    URL the frontend uses to load an icon through the files endpoint.

    The path keeps everything after ``icons/`` so scoped names stay unambiguous.
    """
    name = object_key[len("icons/"):] if object_key.startswith("icons/") else object_key
    return f"{url_prefix.rstrip('/')}/{name}"
