"""HTTP client for the Supabase storage REST API."""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from app.core.logging_config import get_logger
from app.storage.results import StorageResult
from app.storage.utils import byte_range_header


logger = get_logger(__name__)


class SupabaseStorageClient:
    """Authenticated calls against one Supabase storage bucket.

    Every method returns a StorageResult instead of raising, so the backend
    built on top decides which failures matter. There is no retry: a failed
    call is reported immediately.

    Endpoints (relative to ``{url}/storage/v1``):
        POST   /object/{bucket}/{key}   upload
        DELETE /object/{bucket}/{key}   delete one
        POST   /object/list/{bucket}    list, body {"prefix", "search"?}
        DELETE /object/{bucket}         batch delete, body {"prefixes": [...]}
        GET    /object/{bucket}/{key}   download, honours Range
    """

    def __init__(
        self,
        url: str,
        key: str,
        bucket: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            url: Supabase project URL (e.g. "https://abc.supabase.co")
            key: Service key sent as Bearer token
            bucket: Storage bucket name
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests pass an ASGITransport)
        """
        self.url = url.rstrip("/")
        self.bucket = bucket
        self._client = httpx.AsyncClient(
            base_url=f"{self.url}/storage/v1",
            headers={"Authorization": f"Bearer {key}"},
            timeout=timeout,
            transport=transport,
        )

        logger.info(
            "supabase_client_initialized",
            url=self.url,
            bucket=self.bucket,
            timeout=timeout,
        )

    def _object_path(self, key: str) -> str:
        return f"/object/{self.bucket}/{quote(key, safe='')}"

    @staticmethod
    def _status_from_body(body: Dict[str, Any], fallback: int) -> int:
        # Supabase may answer 400 with the real status in the body
        try:
            return int(body.get("statusCode", fallback))
        except (TypeError, ValueError):
            return fallback

    @classmethod
    def _interpret(
        cls,
        operation: str,
        response: httpx.Response,
        key: Optional[str] = None,
    ) -> StorageResult:
        """Turn a completed (non-streaming) response into a StorageResult."""
        try:
            body = response.json() if response.content else None
        except ValueError:
            return StorageResult.transport_error(
                operation,
                key=key,
                status_code=response.status_code,
                error="invalid_response",
                message=f"non-JSON response body (HTTP {response.status_code})",
            )

        if isinstance(body, dict) and body.get("error"):
            return StorageResult.provider_error(
                operation,
                key=key,
                status_code=cls._status_from_body(body, response.status_code),
                error=str(body["error"]),
                message=body.get("message"),
            )

        if not response.is_success:
            return StorageResult.provider_error(
                operation,
                key=key,
                status_code=response.status_code,
                error=f"http_{response.status_code}",
                message=response.reason_phrase,
            )

        return StorageResult.success(
            operation,
            value=body,
            key=key,
            status_code=response.status_code,
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        key: Optional[str] = None,
        **kwargs: Any,
    ) -> StorageResult:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.debug(
                "supabase_request_transport_error",
                operation=operation,
                method=method,
                path=path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return StorageResult.transport_error(
                operation,
                key=key,
                error=type(exc).__name__,
                message=str(exc),
            )

        logger.debug(
            "supabase_request_completed",
            operation=operation,
            method=method,
            path=path,
            status_code=response.status_code,
        )
        return self._interpret(operation, response, key=key)

    async def upload(self, key: str, data: bytes, content_type: str) -> StorageResult:
        """Upload bytes, overwriting an existing object with the same key."""
        return await self._request(
            "upload",
            "POST",
            self._object_path(key),
            key=key,
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )

    async def remove(self, key: str) -> StorageResult:
        return await self._request("remove", "DELETE", self._object_path(key), key=key)

    async def list(self, search: Optional[str] = None) -> StorageResult:
        """List bucket entries, optionally filtered by name."""
        body: Dict[str, Any] = {"prefix": ""}
        if search is not None:
            body["search"] = search
        return await self._request(
            "list",
            "POST",
            f"/object/list/{self.bucket}",
            key=search,
            json=body,
        )

    async def remove_many(self, names: List[str]) -> StorageResult:
        return await self._request(
            "remove_many",
            "DELETE",
            f"/object/{self.bucket}",
            json={"prefixes": names},
        )

    async def download(self, key: str, start: int = 0, end: Optional[int] = None) -> StorageResult:
        """Open a streaming GET for a byte range.

        On success the value is the open httpx.Response; the caller owns it
        and must close it. On failure the response is already closed.
        """
        request = self._client.build_request(
            "GET",
            self._object_path(key),
            headers={"Range": byte_range_header(start, end)},
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            return StorageResult.transport_error(
                "download",
                key=key,
                error=type(exc).__name__,
                message=str(exc),
            )

        if response.is_success:
            return StorageResult.success(
                "download",
                value=response,
                key=key,
                status_code=response.status_code,
            )

        try:
            await response.aread()
        except httpx.HTTPError as exc:
            return StorageResult.transport_error(
                "download",
                key=key,
                status_code=response.status_code,
                error=type(exc).__name__,
                message=str(exc),
            )
        finally:
            await response.aclose()

        return self._interpret("download", response, key=key)

    async def aclose(self) -> None:
        await self._client.aclose()
