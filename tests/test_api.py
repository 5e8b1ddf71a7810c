"""
API endpoint tests for file-host.

Tests the HTTP layer including:
- Management API authentication
- Upload, metadata, listing and delete
- Admin stats and clear
- Health, info and metrics endpoints
- Error response formatting
"""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from app.core.config import settings


# ============================================================================
# Authentication
# ============================================================================

@pytest.mark.api
async def test_management_api_disabled_without_token(async_client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", None)

    response = await async_client.get("/api/v1/admin/stats", headers={"Authorization": "Bearer anything"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_002"


@pytest.mark.api
@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong-token"}, {"Authorization": "Basic abc"}])
async def test_management_api_rejects_bad_credentials(async_client, admin_headers, headers):
    response = await async_client.get("/api/v1/files/whatever.png", headers=headers)

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_001"


# ============================================================================
# Files
# ============================================================================

@pytest.mark.api
async def test_upload_returns_created_metadata(upload_file, sample_png_bytes):
    response = await upload_file("Photo.PNG", sample_png_bytes, "image/png")

    assert response.status_code == 201
    data = response.json()
    assert data["name"].endswith(".png")
    assert data["original_name"] == "Photo.PNG"
    assert data["mimetype"] == "image/png"
    assert data["size"] == len(sample_png_bytes)
    assert data["url"] == f"/raw/{data['name']}"
    datetime.fromisoformat(data["created_at"])


@pytest.mark.api
async def test_upload_empty_file_is_rejected(upload_file):
    response = await upload_file("empty.txt", b"")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "UPLOAD_002"


@pytest.mark.api
async def test_upload_over_declared_limit(upload_file, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 0)

    response = await upload_file("big.bin", b"x" * 1024)

    assert response.status_code == 413
    assert response.json()["status_code"] == 413


@pytest.mark.api
async def test_upload_without_file_is_validation_error(async_client, admin_headers):
    response = await async_client.post("/api/v1/files", headers=admin_headers, data={"password": "x"})

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "Validation error"
    assert any(detail["loc"][-1] == "file" for detail in body["details"])


@pytest.mark.api
async def test_get_file_metadata(async_client, upload_file, admin_headers):
    name = (await upload_file("a.txt", b"0123456789")).json()["name"]

    response = await async_client.get(f"/api/v1/files/{name}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["stored_size"] == 10
    assert response.json()["views"] == 0


@pytest.mark.api
async def test_get_unknown_file(async_client, admin_headers):
    response = await async_client.get("/api/v1/files/nope.png", headers=admin_headers)

    assert response.status_code == 404
    assert response.json() == {
        "error": {"code": "FILE_001", "message": "File nope.png not found", "details": {}},
        "status_code": 404,
    }


@pytest.mark.api
async def test_list_files(async_client, upload_file, admin_headers):
    for name in ("a.txt", "b.txt", "c.txt"):
        await upload_file(name, b"x")

    response = await async_client.get("/api/v1/files", params={"limit": 2}, headers=admin_headers)

    assert response.status_code == 200
    assert len(response.json()["files"]) == 2

    invalid = await async_client.get("/api/v1/files", params={"limit": 0}, headers=admin_headers)
    assert invalid.status_code == 422


@pytest.mark.api
async def test_delete_file(async_client, upload_file, admin_headers, local_storage):
    name = (await upload_file("a.txt", b"data")).json()["name"]

    response = await async_client.delete(f"/api/v1/files/{name}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"name": name, "deleted": True}
    assert await local_storage.size(name) is None
    assert (await async_client.get(f"/raw/{name}")).status_code == 404

    again = await async_client.delete(f"/api/v1/files/{name}", headers=admin_headers)
    assert again.status_code == 404


# ============================================================================
# Admin
# ============================================================================

@pytest.mark.api
async def test_admin_stats(async_client, upload_file, admin_headers):
    name = (await upload_file("a.png", b"0123456789")).json()["name"]
    await async_client.get(f"/raw/{name}")

    response = await async_client.get("/api/v1/admin/stats", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {
        "datasource": "local",
        "storage_size": 10,
        "files": 1,
        "views": 1,
        "recorded_size": 10,
    }


@pytest.mark.api
async def test_admin_clear_without_body_keeps_records(async_client, upload_file, admin_headers):
    await upload_file("a.png", b"0123456789")

    response = await async_client.post("/api/v1/admin/clear", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"cleared": True, "remaining_size": 0, "records_removed": 0}


@pytest.mark.api
async def test_admin_clear_with_records(async_client, upload_file, admin_headers):
    await upload_file("a.png", b"0123456789")

    response = await async_client.post(
        "/api/v1/admin/clear", json={"include_records": True}, headers=admin_headers
    )

    assert response.json()["records_removed"] == 1
    stats = (await async_client.get("/api/v1/admin/stats", headers=admin_headers)).json()
    assert stats["files"] == 0
    assert stats["storage_size"] == 0


@pytest.mark.api
async def test_admin_clear_failure_keeps_records(async_client, upload_file, admin_headers, local_storage, monkeypatch):
    await upload_file("a.png", b"0123456789")
    monkeypatch.setattr(local_storage, "clear", AsyncMock(return_value=False))

    response = await async_client.post(
        "/api/v1/admin/clear", json={"include_records": True}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json() == {"cleared": False, "remaining_size": 10, "records_removed": 0}
    stats = (await async_client.get("/api/v1/admin/stats", headers=admin_headers)).json()
    assert stats["files"] == 1


# ============================================================================
# Health, info, metrics
# ============================================================================

@pytest.mark.api
async def test_health_check(async_client):
    response = await async_client.get("/api/v1/health/")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == settings.SERVICE_NAME
    datetime.fromisoformat(data["timestamp"])


@pytest.mark.api
async def test_storage_health_check(async_client, local_storage):
    await local_storage.save("a.png", b"0123456789")

    response = await async_client.get("/api/v1/health/storage")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["datasource"] == "local"
    assert data["storage_size"] == 10


@pytest.mark.api
async def test_root_and_info(async_client):
    root = (await async_client.get("/")).json()
    info = (await async_client.get("/info")).json()

    assert root["service"] == settings.SERVICE_NAME
    assert info["datasource"]["type"] == settings.DATASOURCE_TYPE
    assert "SUPABASE_KEY" not in str(info)


@pytest.mark.api
async def test_metrics_exposes_storage_counters(async_client, upload_file):
    await upload_file("a.png", b"data")

    response = await async_client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "storage_operations_total" in response.text
    assert "file_uploads_total" in response.text
    assert "http_requests_total" in response.text


@pytest.mark.api
async def test_trace_id_is_echoed(async_client):
    response = await async_client.get("/api/v1/health/", headers={"X-Trace-ID": "trace-abc"})
    generated = await async_client.get("/api/v1/health/")

    assert response.headers["x-trace-id"] == "trace-abc"
    assert generated.headers["x-trace-id"]
