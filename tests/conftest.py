"""
Pytest configuration and shared fixtures for file-host tests.

This module provides:
- Database fixtures (fresh SQLite file per test)
- Storage fixtures (local directory, Supabase over the in-process mock,
  S3 over an in-memory client)
- API client fixtures with dependency overrides
- Test data fixtures
"""

import re
from pathlib import Path
from typing import AsyncGenerator, Dict

import httpx
import pytest
from botocore.exceptions import ClientError
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.main import app
from app.core.config import settings
from app.db.session import get_session_factory, init_models
from app.services.file_service import FileService
from app.storage import get_storage
from app.storage.local import LocalStorageBackend
from app.storage.s3 import S3StorageBackend
from app.storage.supabase import SupabaseStorageBackend
from app.storage.supabase_client import SupabaseStorageClient
from mocks import supabase_storage_mock


SUPABASE_TEST_URL = "http://supabase.test"
SUPABASE_TEST_BUCKET = "files"
ADMIN_TOKEN = "test-admin-token"


# ============================================================================
# Database fixtures
# ============================================================================

@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory bound to a fresh SQLite database with the schema created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False}
    )
    await init_models(engine)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


# ============================================================================
# Storage fixtures
# ============================================================================

@pytest.fixture
def local_storage(tmp_path: Path) -> LocalStorageBackend:
    return LocalStorageBackend(base_path=str(tmp_path / "uploads"))


@pytest.fixture
def supabase_mock():
    """The in-process Supabase storage mock, emptied before and after each test."""
    supabase_storage_mock.reset()
    yield supabase_storage_mock
    supabase_storage_mock.reset()


def _supabase_client(key: str = supabase_storage_mock.SERVICE_KEY) -> SupabaseStorageClient:
    return SupabaseStorageClient(
        url=SUPABASE_TEST_URL,
        key=key,
        bucket=SUPABASE_TEST_BUCKET,
        timeout=5.0,
        transport=ASGITransport(app=supabase_storage_mock.app),
    )


@pytest.fixture
async def supabase_client(supabase_mock) -> AsyncGenerator[SupabaseStorageClient, None]:
    client = _supabase_client()
    yield client
    await client.aclose()


@pytest.fixture
def supabase_storage(supabase_client) -> SupabaseStorageBackend:
    """Supabase backend in strict mode (provider errors raise)."""
    return SupabaseStorageBackend(supabase_client, strict_errors=True)


@pytest.fixture
def lenient_supabase_storage(supabase_client) -> SupabaseStorageBackend:
    """Supabase backend that only logs provider errors on save and delete."""
    return SupabaseStorageBackend(supabase_client, strict_errors=False)


class FakeS3Body:
    def __init__(self, content: bytes):
        self.content = content
        self.closed = False

    async def iter_chunks(self, chunk_size: int):
        for offset in range(0, len(self.content), chunk_size):
            yield self.content[offset:offset + chunk_size]

    def close(self):
        self.closed = True


class FakeS3Paginator:
    def __init__(self, objects: Dict[str, bytes], page_size: int = 2):
        self.objects = objects
        self.page_size = page_size

    async def paginate(self, Bucket):
        keys = sorted(self.objects)
        for offset in range(0, max(len(keys), 1), self.page_size):
            page = keys[offset:offset + self.page_size]
            yield {"Contents": [{"Key": key, "Size": len(self.objects[key])} for key in page]} if page else {}


class FakeS3Client:
    """In-memory stand-in for the aioboto3 S3 client calls the backend makes."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.bodies = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    @staticmethod
    def _missing(operation: str) -> ClientError:
        return ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."},
             "ResponseMetadata": {"HTTPStatusCode": 404}},
            operation,
        )

    async def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[Key] = bytes(Body)
        self.content_types[Key] = ContentType

    async def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)

    async def delete_objects(self, Bucket, Delete):
        for item in Delete["Objects"]:
            self.objects.pop(item["Key"], None)

    async def get_object(self, Bucket, Key, Range):
        if Key not in self.objects:
            raise self._missing("GetObject")
        content = self.objects[Key]
        start, end = re.match(r"bytes=(\d+)-(\d*)", Range).groups()
        end = int(end) if end else len(content) - 1
        body = FakeS3Body(content[int(start):end + 1])
        self.bodies.append(body)
        return {"Body": body, "ResponseMetadata": {"HTTPStatusCode": 206}}

    async def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": len(self.objects[Key])}

    def get_paginator(self, name):
        return FakeS3Paginator(self.objects)


@pytest.fixture
def fake_s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def s3_storage(fake_s3_client, monkeypatch) -> S3StorageBackend:
    backend = S3StorageBackend(region="eu-west-1", bucket_name="file-host-test")
    monkeypatch.setattr(backend, "_get_s3_client", lambda: fake_s3_client)
    return backend


@pytest.fixture(params=["local", "supabase", "s3"])
def storage(request):
    """Every backend that can run in-process, for contract tests."""
    return request.getfixturevalue(f"{request.param}_storage")



# ============================================================================
# Service and API fixtures
# ============================================================================

@pytest.fixture
def file_service(local_storage, session_factory) -> FileService:
    return FileService(storage=local_storage, session_factory=session_factory)


@pytest.fixture
def admin_headers(monkeypatch) -> dict:
    """Enable the management API and return matching auth headers."""
    monkeypatch.setattr(settings, "ADMIN_TOKEN", ADMIN_TOKEN)
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def app_storage(local_storage):
    """Backend injected into the app. Test modules override this fixture to swap it."""
    return local_storage


@pytest.fixture
async def async_client(app_storage, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Asynchronous test client with storage and database overridden."""
    app.dependency_overrides[get_storage] = lambda: app_storage
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Test data fixtures
# ============================================================================

@pytest.fixture
def sample_png_bytes() -> bytes:
    """Minimal valid PNG (1x1 pixel)."""
    return bytes.fromhex(
        "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
        "1f15c4890000000d49444154789c6360000002000001e221bc330000000049454e44ae426082"
    )


@pytest.fixture
def upload_file(async_client, admin_headers):
    """POST a multipart upload to the files API."""
    async def _upload(filename: str, data: bytes, content_type: str = "application/octet-stream",
                      password: str = None) -> httpx.Response:
        form = {"password": password} if password is not None else None
        return await async_client.post(
            "/api/v1/files",
            files={"file": (filename, data, content_type)},
            data=form,
            headers=admin_headers,
        )

    return _upload


@pytest.fixture
async def supabase_client_factory(supabase_mock):
    """Build extra clients against the mock, e.g. with a wrong service key."""
    clients = []

    def _make(key: str = supabase_storage_mock.SERVICE_KEY) -> SupabaseStorageClient:
        client = _supabase_client(key)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
