"""AWS S3 storage backend."""

from contextlib import AsyncExitStack
from typing import Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.logging_config import get_logger
from app.core.metrics import record_storage_operation
from app.storage.errors import DatasourceError, ProviderError, TransportError
from app.storage.stream import DEFAULT_CHUNK_SIZE, ByteStream
from app.storage.utils import byte_range_header, guess_mimetype


logger = get_logger(__name__)

NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")


class S3StorageBackend:
    """S3 storage implementation with one object per key in a single bucket.

    Supports both AWS S3 and S3-compatible services (e.g., MinIO) via endpoint_url.
    """

    name = "s3"

    def __init__(
        self,
        region: str,
        bucket_name: str,
        endpoint_url: Optional[str] = None
    ):
        """Initialize S3 storage backend.

        Args:
            region: AWS region name (e.g., "eu-west-1")
            bucket_name: S3 bucket name
            endpoint_url: Optional S3-compatible endpoint (e.g., "http://minio:9000")
        """
        self.session = aioboto3.Session()
        self.region = region
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url

        logger.info(
            "s3_storage_backend_initialized",
            region=self.region,
            bucket_name=self.bucket_name,
            endpoint_url=self.endpoint_url,
            s3_compatible=bool(endpoint_url),
        )

    def _get_s3_client(self):
        return self.session.client(
            's3',
            region_name=self.region,
            endpoint_url=self.endpoint_url
        )

    @staticmethod
    def _error_code(exc: ClientError) -> str:
        return exc.response.get('Error', {}).get('Code', 'Unknown')

    def _translate(self, exc: Exception, operation: str, key: Optional[str] = None) -> DatasourceError:
        """Wrap a boto error in the matching DatasourceError."""
        if isinstance(exc, ClientError):
            return ProviderError(
                operation,
                exc.response.get('Error', {}).get('Message', str(exc)),
                key=key,
                status_code=exc.response.get('ResponseMetadata', {}).get('HTTPStatusCode'),
                error=self._error_code(exc),
            )
        return TransportError(operation, str(exc), key=key, error=type(exc).__name__)

    async def save(self, key: str, data: bytes) -> None:
        """Upload bytes to S3.

        Raises:
            DatasourceError: If the upload failed
        """
        mimetype = guess_mimetype(key)
        try:
            async with self._get_s3_client() as s3:
                await s3.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=data,
                    ContentType=mimetype,
                )
        except (ClientError, BotoCoreError) as exc:
            record_storage_operation(self.name, "save", "error")
            logger.error(
                "s3_storage_save_failed",
                bucket=self.bucket_name,
                key=key,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise self._translate(exc, "save", key) from exc

        record_storage_operation(self.name, "save", "success")
        logger.info(
            "s3_storage_save_success",
            bucket=self.bucket_name,
            key=key,
            content_type=mimetype,
            bytes_written=len(data),
        )

    async def delete(self, key: str) -> None:
        """Delete an object.

        S3 deletes are idempotent: a missing object succeeds without error.

        Raises:
            DatasourceError: If the delete failed
        """
        try:
            async with self._get_s3_client() as s3:
                await s3.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as exc:
            record_storage_operation(self.name, "delete", "error")
            logger.error(
                "s3_storage_delete_failed",
                bucket=self.bucket_name,
                key=key,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise self._translate(exc, "delete", key) from exc

        record_storage_operation(self.name, "delete", "success")
        logger.info("s3_storage_delete_success", bucket=self.bucket_name, key=key)

    async def clear(self) -> bool:
        """Delete all objects page by page. Failures are logged and reported as False."""
        removed = 0
        try:
            async with self._get_s3_client() as s3:
                paginator = s3.get_paginator('list_objects_v2')
                async for page in paginator.paginate(Bucket=self.bucket_name):
                    objects = [{'Key': item['Key']} for item in page.get('Contents', [])]
                    if not objects:
                        continue
                    await s3.delete_objects(
                        Bucket=self.bucket_name,
                        Delete={'Objects': objects, 'Quiet': True},
                    )
                    removed += len(objects)
        except (ClientError, BotoCoreError) as exc:
            record_storage_operation(self.name, "clear", "error")
            logger.error(
                "s3_storage_clear_failed",
                bucket=self.bucket_name,
                objects_removed=removed,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False

        record_storage_operation(self.name, "clear", "success")
        logger.info("s3_storage_clear_success", bucket=self.bucket_name, objects_removed=removed)
        return True

    async def get(self, key: str, start: int = 0, end: Optional[int] = None) -> Optional[ByteStream]:
        """Stream a byte range of one object.

        The S3 client stays open until the returned stream is closed.

        Raises:
            DatasourceError: On any failure other than a missing object
        """
        stack = AsyncExitStack()
        try:
            s3 = await stack.enter_async_context(self._get_s3_client())
            response = await s3.get_object(
                Bucket=self.bucket_name,
                Key=key,
                Range=byte_range_header(start, end),
            )
        except ClientError as exc:
            await stack.aclose()
            if self._error_code(exc) in NOT_FOUND_CODES:
                record_storage_operation(self.name, "get", "not_found")
                logger.info("s3_storage_get_not_found", bucket=self.bucket_name, key=key)
                return None
            record_storage_operation(self.name, "get", "error")
            logger.error("s3_storage_get_failed", key=key, error=str(exc))
            raise self._translate(exc, "get", key) from exc
        except BotoCoreError as exc:
            await stack.aclose()
            record_storage_operation(self.name, "get", "error")
            logger.error("s3_storage_get_failed", key=key, error=str(exc))
            raise self._translate(exc, "get", key) from exc

        body = response['Body']
        stack.callback(body.close)

        async def chunks():
            async for chunk in body.iter_chunks(DEFAULT_CHUNK_SIZE):
                yield chunk

        record_storage_operation(self.name, "get", "success")
        return ByteStream(
            chunks(),
            close=stack.aclose,
            status_code=response.get('ResponseMetadata', {}).get('HTTPStatusCode'),
        )

    async def size(self, key: str) -> Optional[int]:
        """Object size from HeadObject, or None if missing or on error."""
        try:
            async with self._get_s3_client() as s3:
                response = await s3.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as exc:
            if self._error_code(exc) not in NOT_FOUND_CODES:
                logger.error("s3_storage_size_failed", key=key, error=str(exc))
            return None
        except BotoCoreError as exc:
            logger.error("s3_storage_size_failed", key=key, error=str(exc))
            return None

        return int(response.get('ContentLength', 0))

    async def full_size(self) -> int:
        """Total size of the bucket, or 0 if the listing fails."""
        total = 0
        try:
            async with self._get_s3_client() as s3:
                paginator = s3.get_paginator('list_objects_v2')
                async for page in paginator.paginate(Bucket=self.bucket_name):
                    total += sum(item.get('Size', 0) for item in page.get('Contents', []))
        except (ClientError, BotoCoreError) as exc:
            logger.error("s3_storage_full_size_failed", bucket=self.bucket_name, error=str(exc))
            return 0
        return total

    async def aclose(self) -> None:
        """Clients are opened per call; nothing to release."""
