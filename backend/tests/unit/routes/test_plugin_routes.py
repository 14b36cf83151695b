"""
Unit tests for the HTTP API.

The application is built with create_app() on in-memory SQLite and the
in-memory blob store and driven through FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from nextmarket.main import create_app
from nextmarket.services.plugins.exceptions import StorageError
from nextmarket.storage.memory import InMemoryBlobStore

API = "/api/v1"
SCHEMA = {"required": ["apiKey"], "properties": {"apiKey": {"type": "string", "minLength": 8}}}


class BrokenBlobStore(InMemoryBlobStore):
    def put(self, key: str, data: bytes, content_type: str) -> str:
        raise StorageError("connect to http://minio:9000 failed", details={"key": key})


@pytest.fixture
def client(settings, session_factory, blob_store):
    app = create_app(settings, session_factory=session_factory, blob_store=blob_store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def upload(client, build_package):
    """POST a package built from manifest fields."""

    def _upload(name: str = "demo", version: str = "1.0.0", **manifest):
        data = build_package({"name": name, "version": version, **manifest}, readme=f"# {name}")
        return client.post(
            f"{API}/plugins/upload",
            files={"file": (f"{name}-{version}.tgz", data, "application/gzip")},
        )

    return _upload


@pytest.mark.unit
class TestUploadEndpoint:
    """Test POST /plugins/upload."""

    def test_upload_created(self, upload) -> None:
        response = upload("weather", "1.0.0", description="Forecasts")

        assert response.status_code == 201
        body = response.json()
        assert body["code"] == 201
        assert body["data"]["plugin"]["npm_package_name"] == "weather"
        assert body["data"]["plugin"]["latest_version"] == "1.0.0"
        assert body["data"]["version"]["version"] == "1.0.0"
        assert body["data"]["created_plugin"] is True
        assert "object_key" not in body["data"]["version"]

    def test_duplicate_version_conflict(self, upload) -> None:
        upload("demo", "1.0.0")

        response = upload("demo", "1.0.0")

        assert response.status_code == 409
        assert response.json()["code"] == 409
        assert response.json()["message"] == "version 1.0.0 already exists"

    def test_invalid_version_bad_request(self, upload) -> None:
        response = upload("demo", "latest")

        assert response.status_code == 400
        assert "invalid version format" in response.json()["message"]

    def test_corrupt_archive_bad_request(self, client) -> None:
        response = client.post(
            f"{API}/plugins/upload", files={"file": ("broken.tgz", b"not a tarball", "application/gzip")}
        )

        assert response.status_code == 400
        assert response.json()["data"]["error_type"] == "validation_error"

    def test_missing_file_bad_request(self, client) -> None:
        response = client.post(f"{API}/plugins/upload")

        assert response.status_code == 400

    def test_oversized_upload_rejected(self, settings, session_factory, blob_store, build_package) -> None:
        small = settings.model_copy(update={"max_upload_size": 64})
        data = build_package({"name": "demo", "version": "1.0.0"}, readme="x" * 1000)

        with TestClient(create_app(small, session_factory=session_factory, blob_store=blob_store)) as client:
            response = client.post(f"{API}/plugins/upload", files={"file": ("demo.tgz", data, "application/gzip")})

        assert response.status_code == 413

    def test_storage_failure_hides_details(self, settings, session_factory, build_package) -> None:
        app = create_app(settings, session_factory=session_factory, blob_store=BrokenBlobStore())
        data = build_package({"name": "demo", "version": "1.0.0"})

        with TestClient(app) as client:
            response = client.post(f"{API}/plugins/upload", files={"file": ("demo.tgz", data, "application/gzip")})

        assert response.status_code == 502
        body = response.json()
        assert body["message"] == "Storage service error"
        assert "minio" not in response.text
        assert "error_id" in body["data"]


@pytest.mark.unit
class TestCatalogEndpoints:
    """Test listing, search and lookups."""

    def test_list_envelope_and_paging(self, client, upload) -> None:
        for index in range(3):
            upload(f"plugin-{index}")

        response = client.get(f"{API}/plugins", params={"page": 1, "pageSize": 2})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 3
        assert data["page"] == 1
        assert data["pageSize"] == 2
        assert len(data["items"]) == 2

    def test_list_filtered_by_type(self, client, upload) -> None:
        upload("free-one")
        upload("paid-one", type="enterprise")

        data = client.get(f"{API}/plugins", params={"type": "enterprise"}).json()["data"]

        assert [p["npm_package_name"] for p in data["items"]] == ["paid-one"]

    @pytest.mark.parametrize("params", [{"pageSize": 0}, {"pageSize": 101}, {"page": 0}, {"type": "premium"}])
    def test_list_rejects_bad_parameters(self, client, params) -> None:
        response = client.get(f"{API}/plugins", params=params)

        assert response.status_code == 400
        assert response.json()["code"] == 400

    def test_search(self, client, upload) -> None:
        upload("foo-widget")
        upload("other", description="a FOO helper")
        upload("unrelated")

        data = client.get(f"{API}/plugins/search", params={"q": "foo"}).json()["data"]

        assert data["total"] == 2

    def test_search_requires_query(self, client) -> None:
        assert client.get(f"{API}/plugins/search").status_code == 400

    def test_get_by_id_and_name(self, client, upload) -> None:
        plugin_id = upload("@acme/widget").json()["data"]["plugin"]["id"]

        by_id = client.get(f"{API}/plugins/{plugin_id}").json()["data"]
        by_name = client.get(f"{API}/plugins/by-name/@acme/widget").json()["data"]

        assert by_id["id"] == by_name["id"] == plugin_id
        assert [v["version"] for v in by_id["versions"]] == ["1.0.0"]

    def test_unknown_plugin_not_found(self, client) -> None:
        response = client.get(f"{API}/plugins/999")

        assert response.status_code == 404
        assert response.json() == {
            "code": 404,
            "message": "plugin not found",
            "data": {"error_type": "not_found_error", "resource": "plugin", "id": "999"},
        }


@pytest.mark.unit
class TestConfigEndpoints:
    """Test PUT/GET /plugins/{id}/config."""

    def test_save_and_read_back(self, client, upload) -> None:
        body = upload("demo", nextMarketConfig=SCHEMA).json()["data"]
        plugin_id, version_id = body["plugin"]["id"], body["version"]["id"]
        url = f"{API}/plugins/{plugin_id}/config"

        short = client.put(url, params={"version_id": version_id}, json={"apiKey": "short"})
        saved = client.put(url, params={"version_id": version_id}, json={"apiKey": "12345678"})
        stored = client.get(url, params={"version_id": version_id}).json()["data"]

        assert short.status_code == 400
        assert short.json()["data"]["field"] == "apiKey"
        assert short.json()["data"]["rule"] == "minLength"
        assert saved.status_code == 200
        assert stored["values"] == {"apiKey": "12345678"}
        assert stored["schema"] == SCHEMA

    def test_version_id_required(self, client, upload) -> None:
        plugin_id = upload("demo").json()["data"]["plugin"]["id"]

        response = client.put(f"{API}/plugins/{plugin_id}/config", json={})

        assert response.status_code == 400

    def test_unknown_version(self, client, upload) -> None:
        plugin_id = upload("demo").json()["data"]["plugin"]["id"]

        response = client.put(f"{API}/plugins/{plugin_id}/config", params={"version_id": 999}, json={})

        assert response.status_code == 404


@pytest.mark.unit
class TestDownloadDeleteAndFiles:
    """Test downloads, icons and deletion."""

    def test_download_url(self, client, upload) -> None:
        plugin_id = upload("demo").json()["data"]["plugin"]["id"]

        data = client.get(f"{API}/plugins/{plugin_id}/versions/1.0.0/download").json()["data"]

        assert "plugins/demo/1.0.0/demo-1.0.0.tgz" in data["url"]
        assert data["expires_in"] == 3600

    def test_icon_served(self, client, build_package) -> None:
        data = build_package(
            {"name": "demo", "version": "1.0.0", "icon": "icon.svg"}, extra_files={"icon.svg": b"<svg/>"}
        )
        plugin = client.post(
            f"{API}/plugins/upload", files={"file": ("demo.tgz", data, "application/gzip")}
        ).json()["data"]["plugin"]

        response = client.get(plugin["icon_url"])

        assert plugin["icon_url"] == "/api/v1/files/demo.svg"
        assert response.status_code == 200
        assert response.content == b"<svg/>"
        assert response.headers["content-type"].startswith("image/svg+xml")

    def test_missing_file(self, client) -> None:
        assert client.get(f"{API}/files/none.png").status_code == 404

    def test_delete(self, client, upload, blob_store) -> None:
        upload("demo", "1.0.0")
        plugin_id = upload("demo", "1.1.0").json()["data"]["plugin"]["id"]

        response = client.delete(f"{API}/plugins/{plugin_id}")

        assert response.status_code == 200
        assert response.json()["data"]["versions_removed"] == 2
        assert client.get(f"{API}/plugins/{plugin_id}").status_code == 404
        assert blob_store.keys() == []


@pytest.mark.unit
class TestHealth:
    def test_health(self, client) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "healthy"
