import time

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.database import StorageGateway
from app.main import create_app
from conftest import REGIONS, make_registry, unreachable_engine_factory


def _upload(client, name="hello.txt", data=b"hello world", mime="text/plain", region="us-west-1", headers=None):
    return client.post(
        "/upload",
        files={"file": (name, data, mime)},
        data={"region": region} if region is not None else {},
        headers=headers or {},
    )


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "regions": REGIONS}


def test_upload_success(client, staging_dir):
    start_ms = int(time.time() * 1000)
    r = _upload(client, headers={"X-Upload-Start-Time": str(start_ms)})

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert isinstance(body["fileId"], int) and body["fileId"] > 0
    assert body["region"] == "us-west-1"
    assert body["uploadDuration"] >= 0
    assert body["details"]["fileName"] == "hello.txt"
    assert body["details"]["fileSize"] == len(b"hello world")
    assert body["details"]["fileType"] == "text/plain"
    assert "speedMBps" in body["details"]
    assert list(staging_dir.iterdir()) == []


def test_upload_without_start_header(client):
    r = _upload(client)
    assert r.status_code == 200
    assert r.json()["uploadDuration"] >= 0


def test_upload_missing_file(client):
    r = client.post("/upload", data={"region": "us-west-1"})
    assert r.status_code == 400
    assert r.json()["detail"] == "No file uploaded"


def test_upload_missing_region(client):
    r = _upload(client, region=None)
    assert r.status_code == 400
    assert r.json()["detail"] == "No region specified"


def test_upload_unknown_region_creates_nothing(client):
    r = _upload(client, region="mars-1")
    assert r.status_code == 400
    assert "mars-1" in r.json()["detail"]
    statuses = client.get("/databases").json()
    assert all(s["files"] == [] for s in statuses)


def test_upload_bad_start_header(client):
    r = _upload(client, headers={"X-Upload-Start-Time": "yesterday"})
    assert r.status_code == 400


def test_upload_empty_file(client):
    r = _upload(client, data=b"")
    assert r.status_code == 400


def test_upload_too_large(client, staging_dir, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 10)
    r = _upload(client, data=b"x" * 11)
    assert r.status_code == 413
    assert list(staging_dir.iterdir()) == []


def test_upload_with_ancient_start_header_still_succeeds(client):
    r = _upload(client, headers={"X-Upload-Start-Time": "1"})
    assert r.status_code == 200
    assert 0 <= r.json()["uploadDuration"] <= 2**31 - 1
    assert r.json()["uploadDuration"] < 60_000


def test_upload_staging_error_is_json_500(client, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_TEMP_DIR", str(tmp_path / "missing"))
    r = _upload(client)
    assert r.status_code == 500
    assert r.headers["content-type"] == "application/json"
    assert r.json()["detail"].startswith("Upload failed")


def test_databases_lists_every_region_newest_first(client):
    first = _upload(client, name="a.txt").json()["fileId"]
    second = _upload(client, name="b.txt", data=b"x" * 2048).json()["fileId"]

    r = client.get("/databases")
    assert r.status_code == 200
    statuses = r.json()
    assert [s["region"] for s in statuses] == REGIONS
    west = statuses[0]
    assert west["status"] == "connected"
    assert west["endpoint"] == "us-west-1.db.internal:5432"
    assert [f["id"] for f in west["files"]] == [second, first]
    listed = west["files"][0]
    assert set(listed) == {"id", "fileName", "fileSize", "fileType", "region",
                           "createdAt", "uploadDurationMs", "speedMBps"}
    assert listed["fileName"] == "b.txt"
    assert listed["fileSize"] == 2048


def test_download_round_trip(client):
    payload = bytes(range(256)) * 40
    file_id = _upload(client, name="blob.bin", data=payload, mime="application/octet-stream").json()["fileId"]

    r = client.get(f"/download/{file_id}", params={"region": "us-west-1"})
    assert r.status_code == 200
    assert r.content == payload
    assert r.headers["content-type"] == "application/octet-stream"
    assert r.headers["content-disposition"] == 'attachment; filename="blob.bin"'


def test_download_name_with_space_keeps_plain_filename(client):
    file_id = _upload(client, name="my report.pdf", mime="application/pdf").json()["fileId"]
    r = client.get(f"/download/{file_id}", params={"region": "us-west-1"})
    assert r.status_code == 200
    assert r.headers["content-disposition"] == 'attachment; filename="my report.pdf"'


def test_download_not_found_and_wrong_region(client):
    file_id = _upload(client).json()["fileId"]
    assert client.get("/download/9999", params={"region": "us-west-1"}).status_code == 404
    assert client.get(f"/download/{file_id}", params={"region": "sa-east-1"}).status_code == 404


@pytest.mark.parametrize("path, params", [
    ("/download/abc", {"region": "us-west-1"}),
    ("/download/0", {"region": "us-west-1"}),
    ("/download/1", {}),
    ("/download/1", {"region": "mars-1"}),
])
def test_download_bad_parameters(client, path, params):
    assert client.get(path, params=params).status_code == 400


def test_unreachable_stores(staging_dir):
    gateway = StorageGateway(make_registry(), engine_factory=unreachable_engine_factory)
    with TestClient(create_app(gateway)) as client:
        r = _upload(client)
        assert r.status_code == 500
        assert r.json()["detail"].startswith("Upload failed")
        assert list(staging_dir.iterdir()) == []

        statuses = client.get("/databases")
        assert statuses.status_code == 200
        assert [s["status"] for s in statuses.json()] == ["error"] * 3

        assert client.get("/download/1", params={"region": "us-west-1"}).status_code == 500
