"""
Semantic version parsing and ordering for plugin versions.

Versions must be strict semantic versions (MAJOR.MINOR.PATCH with optional
pre-release and build metadata). "1.0", "v1.0.0" and "latest" are rejected.
"""

import functools
import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence, TypeVar

import semver

from .exceptions import InvalidVersionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_version(version: str) -> semver.Version:
    """
    Parse a semantic version string.

    Raises:
        InvalidVersionError: If the string is not valid semantic version syntax.
    """
    if not isinstance(version, str) or not version:
        raise InvalidVersionError(str(version or ""), "version is empty")
    try:
        return semver.Version.parse(version)
    except (ValueError, TypeError) as e:
        raise InvalidVersionError(version, str(e)) from e


def validate_version(version: str) -> str:
    """Return the version unchanged if it is valid semver, raise otherwise."""
    parse_version(version)
    return version


def _try_parse(version: str) -> Optional[semver.Version]:
    try:
        return parse_version(version)
    except InvalidVersionError:
        return None


def compare_versions(a: str, b: str) -> int:
    """
    Compare two version strings by semantic version precedence.

    Build metadata does not affect precedence.

    Returns:
        -1, 0 or 1

    Raises:
        InvalidVersionError: If either string does not parse.
    """
    return parse_version(a).compare(parse_version(b))


def sort_by_precedence(
    records: Sequence[T],
    version_of: Callable[[T], str],
    created_at_of: Callable[[T], Optional[datetime]],
) -> List[T]:
    """
    Sort records oldest first by semantic version precedence.

    Whenever either side of a comparison fails to parse, that pair falls back
    to creation time (older first). Ingestion rejects unparseable versions, so
    the fallback only matters for rows written before validation existed.

    Args:
        records: Items to sort
        version_of: Extracts the version string from an item
        created_at_of: Extracts the creation timestamp from an item

    Returns:
        New list sorted lowest precedence first
    """
    parsed = {id(r): _try_parse(version_of(r)) for r in records}

    def _compare(left: T, right: T) -> int:
        lv, rv = parsed[id(left)], parsed[id(right)]
        if lv is None or rv is None:
            lt = created_at_of(left) or datetime.min
            rt = created_at_of(right) or datetime.min
            return (lt > rt) - (lt < rt)
        return lv.compare(rv)

    unparsed = [version_of(r) for r in records if parsed[id(r)] is None]
    if unparsed:
        logger.warning(
            f"{len(unparsed)} stored version(s) are not valid semver; ordering them by creation time"
        )

    return sorted(records, key=functools.cmp_to_key(_compare))
