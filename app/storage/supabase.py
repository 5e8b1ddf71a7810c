"""Supabase storage backend."""

from typing import Any, Dict, List, Optional

from app.core.logging_config import get_logger
from app.core.metrics import record_storage_operation
from app.storage.errors import DatasourceError, TransportError
from app.storage.results import ResultStatus, StorageResult
from app.storage.stream import ByteStream
from app.storage.supabase_client import SupabaseStorageClient
from app.storage.utils import guess_mimetype


logger = get_logger(__name__)


class SupabaseStorageBackend:
    """StorageBackend over a Supabase storage bucket.

    Error policy per operation:
    - save: transport errors raise. Provider errors are logged, and raised
      too when ``strict_errors`` is set.
    - delete: a missing object is success. Other failures are logged, and
      raised when ``strict_errors`` is set.
    - clear, size, full_size: failures are logged and degrade to a no-op,
      None or 0 respectively.
    - get: a missing object returns None, any other failure raises.
    """

    name = "supabase"

    def __init__(self, client: SupabaseStorageClient, strict_errors: bool = True):
        self.client = client
        self.strict_errors = strict_errors

        logger.info(
            "supabase_storage_backend_initialized",
            bucket=client.bucket,
            strict_errors=strict_errors,
        )

    @staticmethod
    def _entries(result: StorageResult) -> List[Dict[str, Any]]:
        """Listing entries of a successful list call.

        Raises:
            DatasourceError: If the listing failed or is not a JSON array
        """
        entries = result.unwrap()
        if entries is None:
            return []
        if not isinstance(entries, list):
            raise TransportError(
                result.operation,
                f"expected a JSON array, got {type(entries).__name__}",
                status_code=result.status_code,
            )
        return entries

    @staticmethod
    def _entry_size(entry: Dict[str, Any]) -> int:
        # folder placeholders carry no metadata
        metadata = entry.get("metadata") or {}
        return int(metadata.get("size") or 0)

    async def save(self, key: str, data: bytes) -> None:
        """Upload bytes under key with a content type guessed from the extension.

        Raises:
            TransportError: If the request did not complete
            ProviderError: If the provider rejected the upload (strict mode)
        """
        mimetype = guess_mimetype(key)

        logger.debug(
            "supabase_storage_save_started",
            key=key,
            content_type=mimetype,
            size=len(data),
        )

        result = await self.client.upload(key, data, mimetype)

        if result.ok:
            record_storage_operation(self.name, "save", "success")
            logger.info(
                "supabase_storage_save_success",
                key=key,
                content_type=mimetype,
                bytes_written=len(data),
            )
            return

        record_storage_operation(self.name, "save", "error")
        logger.error(
            "supabase_storage_save_failed",
            key=key,
            status_code=result.status_code,
            result_status=result.status.value,
            error=result.describe(),
        )

        if result.status is ResultStatus.TRANSPORT_ERROR or self.strict_errors:
            raise result.to_exception()

    async def delete(self, key: str) -> None:
        """Delete one object. A missing object is not an error.

        Raises:
            DatasourceError: If the delete failed (strict mode only)
        """
        result = await self.client.remove(key)

        if result.ok or result.is_not_found:
            record_storage_operation(self.name, "delete", "success")
            logger.info(
                "supabase_storage_delete_success",
                key=key,
                existed=result.ok,
            )
            return

        record_storage_operation(self.name, "delete", "error")
        logger.error(
            "supabase_storage_delete_failed",
            key=key,
            status_code=result.status_code,
            result_status=result.status.value,
            error=result.describe(),
        )

        if self.strict_errors:
            raise result.to_exception()

    async def clear(self) -> bool:
        """List every object, then remove them all in one batch call.

        A failed listing aborts before anything is deleted. Errors from
        either phase are logged, never raised, and reported as False.
        """
        try:
            entries = self._entries(await self.client.list())
            names = [entry["name"] for entry in entries if entry.get("name")]

            if not names:
                record_storage_operation(self.name, "clear", "success")
                logger.info("supabase_storage_clear_empty", bucket=self.client.bucket)
                return True

            self._entries(await self.client.remove_many(names))

            record_storage_operation(self.name, "clear", "success")
            logger.info(
                "supabase_storage_clear_success",
                bucket=self.client.bucket,
                objects_removed=len(names),
            )
            return True
        except DatasourceError as exc:
            record_storage_operation(self.name, "clear", "error")
            logger.error(
                "supabase_storage_clear_failed",
                bucket=self.client.bucket,
                operation=exc.operation,
                status_code=exc.status_code,
                error=exc.message,
            )
            return False

    async def get(self, key: str, start: int = 0, end: Optional[int] = None) -> Optional[ByteStream]:
        """Stream a byte range of one object.

        Whether the remote honoured the range (206) or sent the whole object
        (200) is not checked; the stream starts at or before ``start``.

        Raises:
            DatasourceError: On any failure other than a missing object
        """
        result = await self.client.download(key, start, end)

        if result.ok:
            record_storage_operation(self.name, "get", "success")
            logger.debug(
                "supabase_storage_get_opened",
                key=key,
                start=start,
                end=end,
                status_code=result.status_code,
            )
            return ByteStream.from_httpx(result.value)

        if result.is_not_found:
            record_storage_operation(self.name, "get", "not_found")
            logger.info("supabase_storage_get_not_found", key=key)
            return None

        record_storage_operation(self.name, "get", "error")
        logger.error(
            "supabase_storage_get_failed",
            key=key,
            start=start,
            end=end,
            status_code=result.status_code,
            result_status=result.status.value,
            error=result.describe(),
        )
        raise result.to_exception()

    async def size(self, key: str) -> Optional[int]:
        """Size of one object from a name-filtered listing, or None."""
        try:
            entries = self._entries(await self.client.list(search=key))
        except DatasourceError as exc:
            record_storage_operation(self.name, "size", "error")
            logger.error(
                "supabase_storage_size_failed",
                key=key,
                status_code=exc.status_code,
                error=exc.message,
            )
            return None

        for entry in entries:
            if entry.get("name") == key:
                record_storage_operation(self.name, "size", "success")
                return self._entry_size(entry)

        record_storage_operation(self.name, "size", "not_found")
        return None

    async def full_size(self) -> int:
        """Total size of the bucket, or 0 if the listing fails."""
        try:
            entries = self._entries(await self.client.list())
        except DatasourceError as exc:
            record_storage_operation(self.name, "full_size", "error")
            logger.error(
                "supabase_storage_full_size_failed",
                bucket=self.client.bucket,
                status_code=exc.status_code,
                error=exc.message,
            )
            return 0

        record_storage_operation(self.name, "full_size", "success")
        return sum(self._entry_size(entry) for entry in entries)

    async def aclose(self) -> None:
        await self.client.aclose()
