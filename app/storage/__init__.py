"""Storage abstraction layer for local, Supabase and S3 storage."""

from functools import lru_cache
from typing import Optional

import httpx

from app.core.config import Settings, settings
from .errors import DatasourceConfigError, DatasourceError, ProviderError, TransportError
from .protocol import StorageBackend
from .local import LocalStorageBackend
from .stream import ByteStream
from .supabase import SupabaseStorageBackend
from .supabase_client import SupabaseStorageClient
# S3 backend imported lazily when needed


def create_storage(
    config: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StorageBackend:
    """Build the storage backend named by DATASOURCE_TYPE.

    Args:
        config: Application settings
        transport: Optional httpx transport for the Supabase client

    Raises:
        DatasourceConfigError: If the backend is unknown or misconfigured
    """
    if config.DATASOURCE_TYPE == "local":
        return LocalStorageBackend(config.DATASOURCE_LOCAL_DIRECTORY)
    elif config.DATASOURCE_TYPE == "supabase":
        if not (config.SUPABASE_URL and config.SUPABASE_KEY and config.SUPABASE_BUCKET):
            raise DatasourceConfigError(
                "SUPABASE_URL, SUPABASE_KEY and SUPABASE_BUCKET are required for the supabase datasource"
            )
        client = SupabaseStorageClient(
            url=config.SUPABASE_URL,
            key=config.SUPABASE_KEY,
            bucket=config.SUPABASE_BUCKET,
            timeout=config.SUPABASE_TIMEOUT,
            transport=transport,
        )
        return SupabaseStorageBackend(client, strict_errors=config.DATASOURCE_STRICT_ERRORS)
    elif config.DATASOURCE_TYPE == "s3":
        # Lazy import to avoid requiring aioboto3 unless S3 is used
        from .s3 import S3StorageBackend
        return S3StorageBackend(
            region=config.AWS_REGION,
            bucket_name=config.AWS_S3_BUCKET_NAME,
            endpoint_url=config.AWS_ENDPOINT_URL
        )
    else:
        raise DatasourceConfigError(f"Unknown datasource: {config.DATASOURCE_TYPE}")


@lru_cache()
def get_storage() -> StorageBackend:
    """Process-wide storage backend, built once from settings."""
    return create_storage(settings)


async def close_storage() -> None:
    """Release resources held by the cached backend, if one was built."""
    if get_storage.cache_info().currsize == 0:
        return
    await get_storage().aclose()
    get_storage.cache_clear()


__all__ = [
    "ByteStream",
    "DatasourceConfigError",
    "DatasourceError",
    "LocalStorageBackend",
    "ProviderError",
    "StorageBackend",
    "SupabaseStorageBackend",
    "SupabaseStorageClient",
    "TransportError",
    "close_storage",
    "create_storage",
    "get_storage",
]
