"""
Service layer tests for file-host.

FileService runs against a real local backend and SQLite database; failure
paths swap in an AsyncMock backend.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.core.config import settings
from app.core.security import verify_password
from app.core.errors import ErrorCode, ServiceError
from app.repositories.file_repository import FileRepository
from app.services import file_service as file_service_module
from app.services.file_service import FileService, RawObjectNotFound, generate_key
from app.storage.errors import DatasourceError, ProviderError
from app.storage.stream import ByteStream


async def get_record(session_factory, name):
    async with session_factory() as session:
        return await FileRepository(session).get_by_name(name)


def failing_storage(**side_effects) -> AsyncMock:
    storage = AsyncMock()
    storage.name = "mock"
    for method, effect in side_effects.items():
        getattr(storage, method).side_effect = effect
    return storage


# ============================================================================
# Key generation
# ============================================================================

@pytest.mark.unit
def test_generate_key_keeps_lowercased_extension():
    key = generate_key("Holiday.PNG")

    assert key.endswith(".png")
    assert "/" not in key
    assert generate_key("Holiday.PNG") != key


@pytest.mark.unit
def test_generate_key_without_extension():
    assert "." not in generate_key("README")
    assert generate_key(None)


@pytest.mark.unit
@pytest.mark.parametrize("filename", ["C:\\my.folder\\photo", "archive.tar.gz/..", "weird.p ng", "x." + "a" * 40])
def test_generate_key_drops_unusable_extension(filename):
    key = generate_key(filename)

    assert "." not in key
    assert "\\" not in key
    assert "/" not in key


# ============================================================================
# upload
# ============================================================================

@pytest.mark.unit
async def test_upload_stores_object_then_record(file_service, local_storage, session_factory):
    result = await file_service.upload("photo.png", b"0123456789", content_type="image/png")

    assert result["name"].endswith(".png")
    assert result["original_name"] == "photo.png"
    assert result["mimetype"] == "image/png"
    assert result["size"] == 10
    assert result["views"] == 0
    assert result["password_protected"] is False
    assert result["url"] == f"/raw/{result['name']}"

    assert await local_storage.size(result["name"]) == 10
    record = await get_record(session_factory, result["name"])
    assert record.id == result["id"]


@pytest.mark.unit
async def test_upload_guesses_generic_content_type(file_service):
    result = await file_service.upload("notes.txt", b"hello", content_type="application/octet-stream")

    assert result["mimetype"] == "text/plain"


@pytest.mark.unit
async def test_upload_hashes_password(file_service, session_factory):
    result = await file_service.upload("secret.pdf", b"%PDF", password="hunter2")

    record = await get_record(session_factory, result["name"])
    assert result["password_protected"] is True
    assert record.password
    assert record.password != "hunter2"
    assert record.password.startswith("$argon2")


@pytest.mark.unit
async def test_upload_rejects_empty_file(file_service):
    with pytest.raises(ServiceError) as exc_info:
        await file_service.upload("empty.txt", b"")

    assert exc_info.value.status_code == 400
    assert exc_info.value.code == ErrorCode.UPLOAD_EMPTY_FILE


@pytest.mark.unit
async def test_upload_rejects_oversized_file(file_service, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 0)

    with pytest.raises(ServiceError) as exc_info:
        await file_service.upload("big.bin", b"x")

    assert exc_info.value.code == ErrorCode.UPLOAD_FILE_TOO_LARGE


@pytest.mark.unit
async def test_failed_store_creates_no_record(session_factory):
    storage = failing_storage(save=ProviderError("save", "quota exceeded", key="k"))
    service = FileService(storage=storage, session_factory=session_factory)

    with pytest.raises(ServiceError) as exc_info:
        await service.upload("a.png", b"data")

    assert exc_info.value.status_code == 500
    assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED
    async with session_factory() as session:
        assert (await FileRepository(session).totals())["count"] == 0


@pytest.mark.unit
async def test_upload_windows_path_filename(file_service, local_storage):
    result = await file_service.upload("C:\\my.folder\\photo", b"data")

    assert "\\" not in result["name"]
    assert result["original_name"] == "C:\\my.folder\\photo"
    assert await local_storage.size(result["name"]) == 4


@pytest.mark.unit
async def test_rejected_key_is_storage_write_failure(session_factory):
    storage = failing_storage(save=ValueError("Object key must be a plain file name"))
    service = FileService(storage=storage, session_factory=session_factory)

    with pytest.raises(ServiceError) as exc_info:
        await service.upload("a.png", b"data")

    assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED
    async with session_factory() as session:
        assert (await FileRepository(session).totals())["count"] == 0


@pytest.mark.unit
async def test_failed_metadata_write_discards_object(file_service, local_storage):
    with patch.object(FileRepository, "create", side_effect=SQLAlchemyError("disk full")):
        with pytest.raises(ServiceError) as exc_info:
            await file_service.upload("a.png", b"data")

    assert exc_info.value.code == ErrorCode.METADATA_WRITE_FAILED
    key = exc_info.value.error_details["key"]
    assert await local_storage.size(key) is None


# ============================================================================
# get_file / list_files / delete
# ============================================================================

@pytest.mark.unit
async def test_get_file_reports_stored_size(file_service):
    uploaded = await file_service.upload("a.png", b"0123456789")

    result = await file_service.get_file(uploaded["name"])

    assert result["stored_size"] == 10


@pytest.mark.unit
async def test_get_unknown_file_is_not_found(file_service):
    with pytest.raises(ServiceError) as exc_info:
        await file_service.get_file("nope.png")

    assert exc_info.value.status_code == 404
    assert exc_info.value.code == ErrorCode.FILE_NOT_FOUND


@pytest.mark.unit
async def test_list_files_respects_limit(file_service):
    for index in range(3):
        await file_service.upload(f"{index}.txt", b"x")

    assert len(await file_service.list_files(limit=2)) == 2
    assert len(await file_service.list_files()) == 3


@pytest.mark.unit
async def test_delete_removes_object_and_record(file_service, local_storage, session_factory):
    uploaded = await file_service.upload("a.png", b"data")

    result = await file_service.delete(uploaded["name"])

    assert result == {"name": uploaded["name"], "deleted": True}
    assert await local_storage.size(uploaded["name"]) is None
    assert await get_record(session_factory, uploaded["name"]) is None


@pytest.mark.unit
async def test_failed_storage_delete_keeps_record(session_factory, local_storage):
    uploaded = await FileService(local_storage, session_factory).upload("a.png", b"data")
    storage = failing_storage(delete=DatasourceError("delete", "timeout"))
    service = FileService(storage=storage, session_factory=session_factory)

    with pytest.raises(ServiceError) as exc_info:
        await service.delete(uploaded["name"])

    assert exc_info.value.code == ErrorCode.STORAGE_DELETE_FAILED
    assert await get_record(session_factory, uploaded["name"]) is not None


@pytest.mark.unit
async def test_delete_unknown_file_skips_storage(session_factory):
    storage = failing_storage()
    service = FileService(storage=storage, session_factory=session_factory)

    with pytest.raises(ServiceError):
        await service.delete("nope.png")

    storage.delete.assert_not_awaited()


# ============================================================================
# open_raw / record_view
# ============================================================================

@pytest.mark.unit
async def test_open_raw_public_file(file_service):
    uploaded = await file_service.upload("a.txt", b"hello", content_type="text/plain")

    raw = await file_service.open_raw(uploaded["name"])

    assert raw.file_id == uploaded["id"]
    assert raw.mimetype == "text/plain"
    assert await raw.stream.read() == b"hello"


@pytest.mark.unit
async def test_open_raw_missing_object(file_service):
    with pytest.raises(RawObjectNotFound):
        await file_service.open_raw("missing.png")


@pytest.mark.unit
async def test_open_raw_invalid_key_is_not_found(file_service):
    with pytest.raises(RawObjectNotFound):
        await file_service.open_raw("..")


@pytest.mark.unit
async def test_open_raw_object_without_record(file_service, local_storage):
    await local_storage.save("orphan.png", b"data")

    with pytest.raises(RawObjectNotFound):
        await file_service.open_raw("orphan.png")


@pytest.mark.unit
async def test_open_raw_storage_error_is_not_found(session_factory):
    storage = failing_storage(get=DatasourceError("get", "connection reset"))
    service = FileService(storage=storage, session_factory=session_factory)

    with pytest.raises(RawObjectNotFound):
        await service.open_raw("a.png")


@pytest.mark.unit
async def test_open_raw_metadata_error_is_not_found(session_factory):
    stream = ByteStream.from_bytes(b"data")
    storage = failing_storage()
    storage.get.return_value = stream
    service = FileService(storage=storage, session_factory=session_factory)
    locked = OperationalError("SELECT", {}, Exception("database is locked"))

    with patch.object(FileRepository, "get_by_name", side_effect=locked):
        with pytest.raises(RawObjectNotFound):
            await service.open_raw("a.png")

    assert stream.closed


@pytest.mark.unit
async def test_password_check_runs_in_threadpool(file_service, monkeypatch):
    uploaded = await file_service.upload("a.png", b"data", password="right")
    offloaded = []
    original = file_service_module.run_in_threadpool

    async def recording(func, *args):
        offloaded.append(func)
        return await original(func, *args)

    monkeypatch.setattr(file_service_module, "run_in_threadpool", recording)

    raw = await file_service.open_raw(uploaded["name"], "right")
    await raw.stream.aclose()

    assert offloaded == [verify_password]


@pytest.mark.unit
@pytest.mark.parametrize("password", [None, "", "wrong"])
async def test_open_raw_protected_rejects_and_closes_stream(session_factory, local_storage, password):
    uploaded = await FileService(local_storage, session_factory).upload("a.png", b"data", password="right")

    stream = ByteStream.from_bytes(b"data")
    storage = failing_storage()
    storage.get.return_value = stream
    service = FileService(storage=storage, session_factory=session_factory)

    with pytest.raises(RawObjectNotFound):
        await service.open_raw(uploaded["name"], password)

    assert stream.closed


@pytest.mark.unit
async def test_open_raw_protected_with_password(file_service):
    uploaded = await file_service.upload("a.png", b"data", password="right")

    raw = await file_service.open_raw(uploaded["name"], "right")

    assert await raw.stream.read() == b"data"


@pytest.mark.unit
async def test_record_view_increments_by_one(file_service, session_factory):
    uploaded = await file_service.upload("a.png", b"data")

    await file_service.record_view(uploaded["id"])
    await file_service.record_view(uploaded["id"])

    async with session_factory() as session:
        record = await FileRepository(session).get(uploaded["id"])
    assert record.views == 2


@pytest.mark.unit
async def test_record_view_for_unknown_id_is_harmless(file_service):
    await file_service.record_view("no-such-id")


# ============================================================================
# stats / clear_storage
# ============================================================================

@pytest.mark.unit
async def test_stats(file_service):
    first = await file_service.upload("a.png", b"0123456789")
    await file_service.upload("b.txt", b"abc")
    await file_service.record_view(first["id"])

    stats = await file_service.stats()

    assert stats == {
        "datasource": "local",
        "storage_size": 13,
        "files": 2,
        "views": 1,
        "recorded_size": 13,
    }


@pytest.mark.unit
async def test_clear_storage_keeps_records_by_default(file_service):
    await file_service.upload("a.png", b"data")

    result = await file_service.clear_storage()

    assert result == {"cleared": True, "remaining_size": 0, "records_removed": 0}
    assert (await file_service.stats())["files"] == 1


@pytest.mark.unit
async def test_clear_storage_with_records(file_service):
    await file_service.upload("a.png", b"data")
    await file_service.upload("b.png", b"data")

    result = await file_service.clear_storage(include_records=True)

    assert result["records_removed"] == 2
    assert (await file_service.stats())["files"] == 0


@pytest.mark.unit
async def test_clear_storage_reports_leftovers(session_factory):
    storage = failing_storage()
    storage.full_size.return_value = 42
    service = FileService(storage=storage, session_factory=session_factory)

    result = await service.clear_storage()

    storage.clear.assert_awaited_once()
    assert result["cleared"] is False
    assert result["remaining_size"] == 42


@pytest.mark.unit
@pytest.mark.parametrize("completed, remaining", [(False, 0), (True, 10), (False, 10)])
async def test_incomplete_clear_keeps_records(session_factory, local_storage, completed, remaining):
    uploaded = await FileService(local_storage, session_factory).upload("a.png", b"0123456789")
    storage = failing_storage()
    storage.clear.return_value = completed
    storage.full_size.return_value = remaining
    service = FileService(storage=storage, session_factory=session_factory)

    result = await service.clear_storage(include_records=True)

    assert result == {"cleared": False, "remaining_size": remaining, "records_removed": 0}
    assert await get_record(session_factory, uploaded["name"]) is not None
