"""
Unit test fixtures and helpers.

Builds npm-style package tarballs in memory so archive parsing and
ingestion can be tested without fixture files on disk.
"""

import io
import json
import tarfile
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Union

import pytest

from nextmarket.database import Plugin, PluginVersion


def make_tarball(
    files: Dict[str, Union[bytes, str]],
    compress: bool = True,
) -> bytes:
    """Tar (and gzip) the given name -> content mapping."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz" if compress else "w") as tar:
        for name, content in files.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@pytest.fixture
def build_package() -> Callable[..., bytes]:
    """
    Factory for package archives.

    Example:
        data = build_package({"name": "demo", "version": "1.0.0"}, readme="# Demo")
    """

    def _build(
        manifest: Optional[Dict[str, Any]] = None,
        readme: Optional[str] = None,
        extra_files: Optional[Dict[str, Union[bytes, str]]] = None,
        prefix: str = "package/",
    ) -> bytes:
        files: Dict[str, Union[bytes, str]] = {}
        if manifest is not None:
            files[f"{prefix}package.json"] = json.dumps(manifest)
        if readme is not None:
            files[f"{prefix}README.md"] = readme
        for name, content in (extra_files or {}).items():
            files[f"{prefix}{name}"] = content
        return make_tarball(files)

    return _build


@pytest.fixture
def make_plugin(db_session, blob_store):
    """Insert a plugin with the given versions directly, storing a blob per version."""

    def _make(name: str, versions=(), retention: int = 10, **fields) -> Plugin:
        plugin = Plugin(npm_package_name=name, display_name=name, max_versions_retention=retention, **fields)
        db_session.add(plugin)
        db_session.commit()
        base_time = datetime(2026, 1, 1)
        for index, version in enumerate(versions):
            key = f"plugins/{name}/{version}/{name}-{version}.tgz"
            blob_store.put(key, f"{name}@{version}".encode(), "application/gzip")
            db_session.add(
                PluginVersion(
                    plugin_id=plugin.id,
                    version=version,
                    object_key=key,
                    file_size=10,
                    config_schema_json="{}",
                    created_at=base_time + timedelta(minutes=index),
                )
            )
        db_session.commit()
        return plugin

    return _make


@pytest.fixture
def tarball() -> Callable[..., bytes]:
    """make_tarball as a fixture, for archives build_package cannot express."""
    return make_tarball
