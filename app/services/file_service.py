"""
File Service Layer - storage and metadata orchestration

Keeps the storage backend and the metadata store consistent:
- a file gets a metadata record only after its bytes are stored
- a record is removed only after the backend confirmed the delete
- the raw read path hides why a file could not be served
"""
import re
import secrets
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.errors import ErrorCode, not_found_error, processing_error, upload_error
from app.core.logging_config import get_logger
from app.core.metrics import file_upload_bytes_total, file_uploads_total
from app.core.security import hash_password, verify_password
from app.db.models import File
from app.repositories.file_repository import FileRepository
from app.storage.errors import DatasourceError
from app.storage.protocol import StorageBackend
from app.storage.stream import ByteStream
from app.storage.utils import DEFAULT_MIMETYPE, guess_mimetype

logger = get_logger(__name__)

KEY_SUFFIX_PATTERN = re.compile(r"^\.[a-z0-9]{1,16}$")


class RawObjectNotFound(Exception):
    """The raw route cannot serve this id (missing object, missing record or bad password)."""


@dataclass
class RawObject:
    """An authorized, open object ready to be streamed."""

    file_id: str
    name: str
    mimetype: str
    stream: ByteStream


def generate_key(filename: Optional[str]) -> str:
    """Random object key that keeps the upload's extension if it is a plain one."""
    suffix = PurePosixPath(filename or "").suffix.lower()
    if not KEY_SUFFIX_PATTERN.match(suffix):
        suffix = ""
    return f"{secrets.token_urlsafe(8)}{suffix}"


def serialize_file(record: File) -> Dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "original_name": record.original_name,
        "mimetype": record.mimetype,
        "size": record.size,
        "views": record.views,
        "password_protected": record.password is not None,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "url": f"/raw/{record.name}",
    }


class FileService:
    """
    Core service for stored files.

    Does NOT know about:
    - HTTP requests or responses (raises ServiceError / RawObjectNotFound)
    - which storage backend is configured
    """

    def __init__(self, storage: StorageBackend, session_factory: async_sessionmaker):
        self.storage = storage
        self.session_factory = session_factory

    async def upload(
        self,
        filename: Optional[str],
        data: bytes,
        content_type: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store bytes, then create the metadata record.

        Flow:
        1. Validate size
        2. Generate the object key
        3. Save to the storage backend (no record is written if this fails)
        4. Insert the metadata record (the stored object is removed if this fails)

        Raises:
            ServiceError: On validation, storage or database failure
        """
        if not data:
            file_uploads_total.labels(service=settings.SERVICE_NAME, status="rejected").inc()
            raise upload_error(ErrorCode.UPLOAD_EMPTY_FILE, "Uploaded file is empty")

        if len(data) > settings.max_upload_bytes:
            file_uploads_total.labels(service=settings.SERVICE_NAME, status="rejected").inc()
            raise upload_error(
                ErrorCode.UPLOAD_FILE_TOO_LARGE,
                "File size exceeds maximum allowed",
                {"max_size_mb": settings.MAX_UPLOAD_SIZE_MB, "size": len(data)},
            )

        key = generate_key(filename)
        if content_type and content_type != DEFAULT_MIMETYPE:
            mimetype = content_type
        else:
            mimetype = guess_mimetype(key)

        logger.info(
            "file_upload_started",
            key=key,
            original_name=filename,
            mimetype=mimetype,
            size=len(data),
            password_protected=bool(password),
        )

        try:
            await self.storage.save(key, data)
        except (DatasourceError, ValueError) as exc:
            file_uploads_total.labels(service=settings.SERVICE_NAME, status="failed").inc()
            logger.error("file_upload_storage_failed", key=key, error=str(exc))
            raise processing_error(
                code=ErrorCode.STORAGE_WRITE_FAILED,
                message="Could not store file",
                details={"key": key},
            )

        password_hash = await run_in_threadpool(hash_password, password) if password else None

        try:
            async with self.session_factory() as session:
                record = await FileRepository(session).create(
                    id=str(uuid4()),
                    name=key,
                    original_name=filename,
                    mimetype=mimetype,
                    size=len(data),
                    password=password_hash,
                )
                await session.commit()
        except SQLAlchemyError as exc:
            file_uploads_total.labels(service=settings.SERVICE_NAME, status="failed").inc()
            logger.error("file_upload_metadata_failed", key=key, error=str(exc), exc_info=True)
            await self._discard_object(key)
            raise processing_error(
                code=ErrorCode.METADATA_WRITE_FAILED,
                message="Could not record file metadata",
                details={"key": key},
            )

        file_uploads_total.labels(service=settings.SERVICE_NAME, status="stored").inc()
        file_upload_bytes_total.labels(service=settings.SERVICE_NAME).inc(len(data))
        logger.info("file_upload_completed", key=key, file_id=record.id)

        return serialize_file(record)

    async def _discard_object(self, key: str) -> None:
        try:
            await self.storage.delete(key)
        except DatasourceError as exc:
            logger.error("orphaned_object_cleanup_failed", key=key, error=str(exc))

    async def list_files(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Newest records first."""
        async with self.session_factory() as session:
            records = await FileRepository(session).list_recent(limit)
        return [serialize_file(record) for record in records]

    async def get_file(self, name: str) -> Dict[str, Any]:
        """Metadata plus the size the backend currently reports.

        Raises:
            ServiceError: 404 if no record exists
        """
        async with self.session_factory() as session:
            record = await FileRepository(session).get_by_name(name)

        if record is None:
            raise not_found_error(ErrorCode.FILE_NOT_FOUND, f"File {name} not found")

        result = serialize_file(record)
        result["stored_size"] = await self.storage.size(name)
        return result

    async def delete(self, name: str) -> Dict[str, Any]:
        """Delete the stored object, then its metadata record.

        If the backend reports a failure the record is kept so the object
        stays reachable for a retry.

        Raises:
            ServiceError: 404 if no record exists, 500 if the backend delete failed
        """
        async with self.session_factory() as session:
            repo = FileRepository(session)
            record = await repo.get_by_name(name)
            if record is None:
                raise not_found_error(ErrorCode.FILE_NOT_FOUND, f"File {name} not found")

            try:
                await self.storage.delete(name)
            except DatasourceError as exc:
                logger.error("file_delete_storage_failed", key=name, error=str(exc))
                raise processing_error(
                    code=ErrorCode.STORAGE_DELETE_FAILED,
                    message="Could not delete file from storage",
                    details={"key": name},
                )

            await repo.delete_by_name(name)
            await session.commit()

        logger.info("file_deleted", key=name, file_id=record.id)
        return {"name": name, "deleted": True}

    async def open_raw(self, name: str, password: Optional[str] = None) -> RawObject:
        """Resolve, look up and authorize one raw file request.

        Steps run in order and stop at the first failure, which is always
        reported as RawObjectNotFound:
        1. the backend has an object for ``name``
        2. a metadata record exists for ``name``
        3. a protected record gets a password that verifies

        The returned stream is open; the caller must drain or close it.
        """
        try:
            stream = await self.storage.get(name)
        except ValueError:
            stream = None
        except DatasourceError as exc:
            logger.error("raw_object_open_failed", key=name, error=str(exc))
            stream = None

        if stream is None:
            logger.info("raw_object_not_found", key=name, reason="object_missing")
            raise RawObjectNotFound(name)

        try:
            try:
                async with self.session_factory() as session:
                    record = await FileRepository(session).get_by_name(name)
            except SQLAlchemyError as exc:
                logger.error("raw_object_lookup_failed", key=name, error=str(exc))
                raise RawObjectNotFound(name)

            if record is None:
                logger.info("raw_object_not_found", key=name, reason="metadata_missing")
                raise RawObjectNotFound(name)

            if record.password:
                if not password:
                    logger.info("raw_object_not_found", key=name, reason="password_required")
                    raise RawObjectNotFound(name)
                if not await run_in_threadpool(verify_password, password, record.password):
                    logger.info("raw_object_not_found", key=name, reason="password_invalid")
                    raise RawObjectNotFound(name)
        except BaseException:
            await stream.aclose()
            raise

        return RawObject(
            file_id=record.id,
            name=record.name,
            mimetype=record.mimetype,
            stream=stream,
        )

    async def record_view(self, file_id: str) -> None:
        """Add one view. Runs after delivery; failures are only logged."""
        try:
            async with self.session_factory() as session:
                views = await FileRepository(session).increment_views(file_id)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("file_view_increment_failed", file_id=file_id, error=str(exc))
            return

        logger.debug("file_view_recorded", file_id=file_id, views=views)

    async def stats(self) -> Dict[str, Any]:
        """Storage usage from the backend plus totals from the metadata store."""
        async with self.session_factory() as session:
            totals = await FileRepository(session).totals()

        return {
            "datasource": self.storage.name,
            "storage_size": await self.storage.full_size(),
            "files": totals["count"],
            "views": totals["views"],
            "recorded_size": totals["size"],
        }

    async def clear_storage(self, include_records: bool = False) -> Dict[str, Any]:
        """Empty the backend and optionally drop every metadata record.

        The backend's clear never raises. Records are only dropped when it
        reported success and the backend is empty afterwards.
        """
        logger.warning("storage_clear_requested", include_records=include_records)

        completed = await self.storage.clear()
        remaining = await self.storage.full_size()
        cleared = bool(completed) and remaining == 0

        records_removed = 0
        if include_records and cleared:
            async with self.session_factory() as session:
                records_removed = await FileRepository(session).delete_all()
                await session.commit()
        elif include_records:
            logger.error(
                "storage_clear_incomplete_records_kept",
                backend_reported_success=bool(completed),
                remaining_size=remaining,
            )

        logger.info(
            "storage_clear_completed",
            records_removed=records_removed,
            remaining_size=remaining,
        )
        return {
            "cleared": cleared,
            "remaining_size": remaining,
            "records_removed": records_removed,
        }
