"""
Unit tests for PluginCatalogService.
"""

from unittest.mock import patch

import pytest

from nextmarket.database import Plugin, PluginVersion
from nextmarket.services.plugins.catalog import PluginCatalogService
from nextmarket.services.plugins.exceptions import NotFoundError, StorageError


@pytest.fixture
def catalog(db_session, blob_store, settings) -> PluginCatalogService:
    return PluginCatalogService(db_session, blob_store, settings)


@pytest.mark.unit
class TestListing:
    """Test list_plugins and lookups."""

    def test_pagination_and_total(self, catalog, make_plugin) -> None:
        for index in range(5):
            make_plugin(f"plugin-{index}")

        page, total = catalog.list_plugins(page=2, page_size=2)

        assert total == 5
        assert [p.npm_package_name for p in page] == ["plugin-2", "plugin-3"]

    def test_tier_filter(self, catalog, make_plugin) -> None:
        make_plugin("free-one", type="free")
        make_plugin("paid-one", type="enterprise")

        plugins, total = catalog.list_plugins(plugin_type="enterprise")

        assert total == 1
        assert plugins[0].npm_package_name == "paid-one"

    def test_get_plugin_with_versions(self, catalog, make_plugin) -> None:
        plugin = make_plugin("demo", versions=["1.0.0", "1.1.0"])

        loaded = catalog.get_plugin(plugin.id)

        assert sorted(v.version for v in loaded.versions) == ["1.0.0", "1.1.0"]

    def test_get_plugin_missing(self, catalog) -> None:
        with pytest.raises(NotFoundError):
            catalog.get_plugin(404)

    def test_get_by_name(self, catalog, make_plugin) -> None:
        make_plugin("@scope/demo")

        assert catalog.get_plugin_by_name("@scope/demo").npm_package_name == "@scope/demo"
        with pytest.raises(NotFoundError):
            catalog.get_plugin_by_name("@scope/missing")


@pytest.mark.unit
class TestSearch:
    """Test substring search."""

    @pytest.fixture
    def plugins(self, make_plugin):
        make_plugin("foo-widget")
        make_plugin("described", description="Contains FOO in the description")
        make_plugin("tagged", keywords="charts,FooBar")
        make_plugin("unrelated", description="nothing here", keywords="charts")

    def test_case_insensitive_across_fields(self, catalog, plugins) -> None:
        results, total = catalog.search_plugins("foo")

        assert total == 3
        assert {p.npm_package_name for p in results} == {"foo-widget", "described", "tagged"}

    def test_total_counts_all_matches_not_page(self, catalog, plugins) -> None:
        results, total = catalog.search_plugins("FOO", page=1, page_size=2)

        assert len(results) == 2
        assert total == 3

    def test_second_page(self, catalog, plugins) -> None:
        results, total = catalog.search_plugins("foo", page=2, page_size=2)

        assert len(results) == 1
        assert total == 3

    def test_wildcards_matched_literally(self, catalog, make_plugin) -> None:
        make_plugin("percent", description="100% free")
        make_plugin("plain", description="100 free")

        results, total = catalog.search_plugins("100%")

        assert total == 1
        assert results[0].npm_package_name == "percent"


@pytest.mark.unit
class TestDeletePlugin:
    """Test permanent plugin deletion."""

    def test_removes_records_and_blobs(self, catalog, make_plugin, db_session, blob_store) -> None:
        plugin = make_plugin("demo", versions=["1.0.0", "1.1.0", "2.0.0"], icon_object_key="icons/demo.png")
        blob_store.put("icons/demo.png", b"png", "image/png")
        plugin_id = plugin.id

        with patch.object(blob_store, "delete", wraps=blob_store.delete) as delete:
            report = catalog.delete_plugin(plugin_id)

        assert delete.call_count == 4
        assert report.versions_removed == 3
        assert report.blobs_deleted == 4
        assert blob_store.keys() == []

        assert db_session.query(Plugin).filter(Plugin.id == plugin_id).count() == 0
        assert db_session.query(PluginVersion).filter(PluginVersion.plugin_id == plugin_id).count() == 0
        assert catalog.version_repo.list_for_plugin(plugin_id, include_deleted=True) == []
        assert catalog.plugin_repo.get(plugin_id, include_deleted=True) is None

    def test_soft_deleted_versions_also_removed(self, catalog, make_plugin, db_session) -> None:
        from datetime import datetime

        plugin = make_plugin("demo", versions=["1.0.0", "2.0.0"])
        hidden = db_session.query(PluginVersion).filter(PluginVersion.version == "1.0.0").one()
        hidden.deleted_at = datetime(2026, 2, 1)
        db_session.commit()
        plugin_id = plugin.id

        report = catalog.delete_plugin(plugin_id)

        assert report.versions_removed == 2
        assert db_session.query(PluginVersion).count() == 0

    def test_without_icon_deletes_one_blob_per_version(self, catalog, make_plugin, blob_store) -> None:
        plugin = make_plugin("demo", versions=["1.0.0", "1.1.0"])

        with patch.object(blob_store, "delete", wraps=blob_store.delete) as delete:
            catalog.delete_plugin(plugin.id)

        assert delete.call_count == 2

    def test_blob_failures_reported_not_raised(self, catalog, make_plugin, db_session, blob_store) -> None:
        plugin = make_plugin("demo", versions=["1.0.0"])
        plugin_id = plugin.id

        with patch.object(blob_store, "delete", side_effect=StorageError("unavailable")):
            report = catalog.delete_plugin(plugin_id)

        assert report.blobs_failed == ["plugins/demo/1.0.0/demo-1.0.0.tgz"]
        assert db_session.query(Plugin).filter(Plugin.id == plugin_id).count() == 0

    def test_missing_plugin(self, catalog) -> None:
        with pytest.raises(NotFoundError):
            catalog.delete_plugin(12345)


@pytest.mark.unit
class TestDownloadsAndIcons:
    """Test presigned downloads and icon delivery."""

    def test_download_url_counts_download(self, catalog, make_plugin, db_session) -> None:
        plugin = make_plugin("demo", versions=["1.0.0"])

        url = catalog.get_download_url(plugin.id, "1.0.0")
        catalog.get_download_url(plugin.id, "1.0.0")

        assert "plugins/demo/1.0.0/demo-1.0.0.tgz" in url
        db_session.expire_all()
        assert db_session.get(Plugin, plugin.id).download_count == 2
        assert db_session.query(PluginVersion).one().download_count == 2

    def test_download_unknown_version(self, catalog, make_plugin) -> None:
        plugin = make_plugin("demo", versions=["1.0.0"])

        with pytest.raises(NotFoundError):
            catalog.get_download_url(plugin.id, "9.9.9")

    def test_get_icon(self, catalog, blob_store) -> None:
        blob_store.put("icons/@acme/widget.svg", b"<svg/>", "image/svg+xml")

        data, content_type = catalog.get_icon("@acme/widget.svg")

        assert data == b"<svg/>"
        assert content_type == "image/svg+xml"

    @pytest.mark.parametrize("filename", ["../plugins/demo/1.0.0/demo-1.0.0.tgz", "", "/etc/passwd", "missing.png"])
    def test_get_icon_rejects_unknown_or_unsafe(self, catalog, make_plugin, filename) -> None:
        make_plugin("demo", versions=["1.0.0"])

        with pytest.raises(NotFoundError):
            catalog.get_icon(filename)
