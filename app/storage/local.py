"""Local filesystem storage backend."""

from pathlib import Path
from typing import Optional

import aiofiles

from app.core.logging_config import get_logger
from app.core.metrics import record_storage_operation
from app.storage.errors import DatasourceError
from app.storage.stream import DEFAULT_CHUNK_SIZE, ByteStream
from app.storage.utils import validate_key


logger = get_logger(__name__)


class LocalStorageBackend:
    """Local filesystem storage implementation.

    Stores one file per key directly inside ``base_path``.
    Suitable for development and single-server deployments.
    """

    name = "local"

    def __init__(self, base_path: str):
        """Initialize local storage backend.

        Args:
            base_path: Root directory for file storage
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.base_path / validate_key(key)

    async def save(self, key: str, data: bytes) -> None:
        """Write bytes to ``base_path/key``.

        Raises:
            ValueError: If the key is not a plain file name
            DatasourceError: If the file could not be written
        """
        full_path = self._path(key)

        logger.debug(
            "local_storage_save_started",
            key=key,
            full_path=str(full_path),
        )

        try:
            async with aiofiles.open(full_path, 'wb') as f:
                await f.write(data)
        except OSError as exc:
            record_storage_operation(self.name, "save", "error")
            logger.error(
                "local_storage_save_failed",
                key=key,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise DatasourceError("save", str(exc), key=key) from exc

        record_storage_operation(self.name, "save", "success")
        logger.info(
            "local_storage_save_success",
            key=key,
            bytes_written=len(data),
        )

    async def delete(self, key: str) -> None:
        """Delete a file. Missing files are ignored."""
        full_path = self._path(key)

        try:
            full_path.unlink()
            logger.info("local_storage_delete_success", key=key)
        except FileNotFoundError:
            logger.debug("local_storage_delete_not_found", key=key)
        except OSError as exc:
            record_storage_operation(self.name, "delete", "error")
            logger.error(
                "local_storage_delete_failed",
                key=key,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise DatasourceError("delete", str(exc), key=key) from exc

        record_storage_operation(self.name, "delete", "success")

    async def clear(self) -> bool:
        """Remove every file in the storage directory. Failures are logged and reported as False."""
        removed = 0
        failed = 0
        for path in self.base_path.iterdir():
            if not path.is_file():
                continue
            try:
                path.unlink(missing_ok=True)
                removed += 1
            except OSError as exc:
                failed += 1
                logger.error(
                    "local_storage_clear_item_failed",
                    path=str(path),
                    error=str(exc),
                )

        record_storage_operation(self.name, "clear", "error" if failed else "success")
        logger.info(
            "local_storage_clear_completed",
            directory=str(self.base_path),
            objects_removed=removed,
            failed=failed,
        )
        return not failed

    async def get(self, key: str, start: int = 0, end: Optional[int] = None) -> Optional[ByteStream]:
        """Open a stream over bytes ``start`` through ``end`` of a file."""
        full_path = self._path(key)

        if not full_path.is_file():
            record_storage_operation(self.name, "get", "not_found")
            logger.info("local_storage_get_not_found", key=key)
            return None

        f = await aiofiles.open(full_path, 'rb')
        await f.seek(start)
        remaining = None if end is None else max(end - start + 1, 0)

        async def chunks():
            nonlocal remaining
            while remaining is None or remaining > 0:
                size = DEFAULT_CHUNK_SIZE if remaining is None else min(DEFAULT_CHUNK_SIZE, remaining)
                chunk = await f.read(size)
                if not chunk:
                    break
                if remaining is not None:
                    remaining -= len(chunk)
                yield chunk

        record_storage_operation(self.name, "get", "success")
        return ByteStream(chunks(), close=f.close)

    async def size(self, key: str) -> Optional[int]:
        """Size of a file in bytes, or None if it does not exist."""
        try:
            return self._path(key).stat().st_size
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("local_storage_size_failed", key=key, error=str(exc))
            return None

    async def full_size(self) -> int:
        """Total size of all files in the storage directory.

        Files removed while the directory is being scanned are skipped.
        """
        total = 0
        for path in self.base_path.iterdir():
            try:
                if path.is_file():
                    total += path.stat().st_size
            except FileNotFoundError:
                continue
        return total

    async def aclose(self) -> None:
        """Nothing to release for the filesystem."""
