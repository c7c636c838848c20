"""Tests for file server API endpoints."""

import pytest
from fastapi.testclient import TestClient

from fileserver.main import app
from fileserver.service_locator import get_store, set_store


@pytest.fixture
def client(tmp_path, monkeypatch):
    """
    Create FastAPI test client backed by a temporary database.
    """
    monkeypatch.setattr("fileserver.main.DATABASE_PATH", str(tmp_path / "routes.db"))
    monkeypatch.setattr("fileserver.main.CHUNK_SIZE_BYTES", 16)
    monkeypatch.setattr("fileserver.main.GC_INTERVAL_SECONDS", 0)
    with TestClient(app) as test_client:
        yield test_client


def upload(client, name, data, content_type="application/octet-stream"):
    return client.post(
        "/upload",
        files={"file": (name, data, content_type)},
        follow_redirects=False
    )


class TestUploadAndListing:
    """Test upload, listing and metadata routes."""

    def test_upload_redirects_to_listing(self, client):
        response = upload(client, "notes.txt", b"hello", "text/plain")

        assert response.status_code == 303
        assert response.headers["location"] == "/"

    def test_files_empty_is_404(self, client):
        response = client.get("/files")

        assert response.status_code == 404
        assert response.json()["err"] == "No files exist"

    def test_files_lists_uploads_in_order(self, client):
        upload(client, "one.txt", b"1", "text/plain")
        upload(client, "two.png", b"2", "image/png")

        response = client.get("/files")
        assert response.status_code == 200
        body = response.json()
        assert [f["filename"] for f in body] == ["one.txt", "two.png"]
        assert body[1]["contentType"] == "image/png"
        assert body[1]["status"] == "complete"
        assert set(body[0]) >= {"id", "filename", "contentType", "length", "chunkSize", "createdAt", "checksum"}

    def test_file_metadata(self, client):
        upload(client, "notes.txt", b"hello world", "text/plain")

        response = client.get("/files/notes.txt")
        assert response.status_code == 200
        body = response.json()
        assert body["filename"] == "notes.txt"
        assert body["length"] == 11
        assert body["chunkSize"] == 16

    def test_file_metadata_missing(self, client):
        response = client.get("/files/missing.txt")

        assert response.status_code == 404
        assert response.json()["err"] == "No file exist"
        assert response.json()["code"] == "FILE_NOT_FOUND"

    def test_duplicate_names_are_renamed(self, client):
        upload(client, "dup.png", b"a", "image/png")
        upload(client, "dup.png", b"b", "image/png")

        names = [f["filename"] for f in client.get("/files").json()]
        assert names[0] == "dup.png"
        assert names[1] != "dup.png"
        assert names[1].endswith(".png")

    def test_index_flags_images(self, client):
        upload(client, "cat.jpg", b"jpeg", "image/jpeg")
        upload(client, "doc.txt", b"text", "text/plain")

        response = client.get("/")
        assert response.status_code == 200
        flags = {f["filename"]: f["isImage"] for f in response.json()["files"]}
        assert flags == {"cat.jpg": True, "doc.txt": False}

    def test_responses_carry_request_id(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.headers["X-Request-ID"]


class TestImageStreaming:
    """Test the image endpoint."""

    def test_streams_image_bytes(self, client):
        data = bytes(i % 256 for i in range(1000))
        upload(client, "cat.png", data, "image/png")

        response = client.get("/image/cat.png")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.headers["content-length"] == "1000"
        assert response.content == data

    def test_non_image_is_404(self, client):
        upload(client, "notes.txt", b"hello", "text/plain")

        response = client.get("/image/notes.txt")
        assert response.status_code == 404
        assert response.json()["err"] == "Not an image"

    def test_missing_image_is_404(self, client):
        response = client.get("/image/nope.png")
        assert response.status_code == 404

    def test_range_request(self, client):
        data = bytes(i % 256 for i in range(100))
        upload(client, "cat.png", data, "image/png")

        response = client.get("/image/cat.png", headers={"Range": "bytes=10-29"})
        assert response.status_code == 206
        assert response.headers["content-range"] == "bytes 10-29/100"
        assert response.content == data[10:30]

    def test_unsatisfiable_range(self, client):
        upload(client, "cat.png", b"abc", "image/png")

        response = client.get("/image/cat.png", headers={"Range": "bytes=50-"})
        assert response.status_code == 416
        assert response.headers["content-range"] == "bytes */3"


class TestDelete:
    """Test deletion routes."""

    def test_delete_redirects_and_hides_file(self, client):
        upload(client, "notes.txt", b"hello", "text/plain")
        file_id = client.get("/files/notes.txt").json()["id"]

        response = client.delete(f"/files/{file_id}", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/"

        assert client.get("/files/notes.txt").status_code == 404
        assert client.delete(f"/files/{file_id}", follow_redirects=False).status_code == 404

    def test_delete_unknown_is_404(self, client):
        response = client.delete("/files/does-not-exist", follow_redirects=False)

        assert response.status_code == 404
        assert "err" in response.json()

    def test_post_with_method_override_deletes(self, client):
        upload(client, "notes.txt", b"hello", "text/plain")
        file_id = client.get("/files/notes.txt").json()["id"]

        response = client.post(f"/files/{file_id}?_method=DELETE", follow_redirects=False)
        assert response.status_code == 303
        assert client.get("/files/notes.txt").status_code == 404


class TestInternal:
    """Test maintenance routes and readiness."""

    def test_sweep_endpoint_reclaims_orphans(self, client):
        upload(client, "notes.txt", b"x" * 40, "text/plain")
        store = get_store()
        record = store.fetch_metadata("notes.txt")
        store.file_repo.tombstone(record.file_id)

        response = client.post("/internal/gc/sweep")
        assert response.status_code == 200
        assert response.json() == {"reclaimed": 3}

        response = client.post("/internal/gc/sweep")
        assert response.json() == {"reclaimed": 0}

    def test_requests_before_startup_are_rejected(self):
        set_store(None)
        bare_client = TestClient(app)

        response = bare_client.get("/files")
        assert response.status_code == 503
        assert response.json()["code"] == "STORE_NOT_READY"
