"""
Supabase Storage Mock Server
============================

In-memory stand-in for the Supabase storage REST API, used by the test
suite through ``httpx.ASGITransport`` and runnable on its own for manual
testing.

Usage:
    uvicorn mocks.supabase_storage_mock:app --reload --port 54321

Endpoints:
    POST   /storage/v1/object/list/{bucket}     - List objects (prefix/search)
    POST   /storage/v1/object/{bucket}/{key}    - Upload object (x-upsert honoured)
    GET    /storage/v1/object/{bucket}/{key}    - Download object (Range -> 206)
    DELETE /storage/v1/object/{bucket}/{key}    - Delete one object
    DELETE /storage/v1/object/{bucket}          - Delete many, body {"prefixes": [...]}
    GET    /admin/objects/{bucket}              - Inspect stored objects
    DELETE /admin/reset                         - Clear all data and failures
    GET    /health                              - Health check

Failure injection:
    fail("list", status_code=500) makes every list call fail until reset().
    fail("upload", raw_body=b"<html>") answers with a non-JSON body.

Configuration:
    PORT: Server port (default: 54321)
    MOCK_SERVICE_KEY: Accepted Bearer token (default: test-service-key)
"""

import hashlib
import logging
import os
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Body, Header, Path, Request, Response
from fastapi.responses import JSONResponse

from mocks.common.base import check_bearer, create_mock_app
from mocks.common.errors import MockError, NotFoundError, ValidationError

# Configure logging
logger = logging.getLogger("SupabaseStorageMock")

SERVICE_KEY = os.getenv("MOCK_SERVICE_KEY", "test-service-key")

RANGE_PATTERN = re.compile(r"^bytes=(\d+)-(\d*)$")


@dataclass
class StoredObject:
    content: bytes
    content_type: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def etag(self) -> str:
        return hashlib.md5(self.content).hexdigest()

    def entry(self, name: str) -> Dict[str, Any]:
        """Listing entry in the shape Supabase returns."""
        timestamp = self.created_at.isoformat()
        return {
            "name": name,
            "id": self.id,
            "updated_at": timestamp,
            "created_at": timestamp,
            "last_accessed_at": timestamp,
            "metadata": {
                "eTag": f'"{self.etag}"',
                "size": len(self.content),
                "mimetype": self.content_type,
                "cacheControl": "max-age=3600",
                "lastModified": timestamp,
                "contentLength": len(self.content),
                "httpStatusCode": 200,
            },
        }


@dataclass
class InjectedFailure:
    status_code: int
    error: str
    message: str
    raw_body: Optional[bytes] = None


# In-memory storage: {bucket_name: {object_key: StoredObject}}
buckets: Dict[str, Dict[str, StoredObject]] = {}
failures: Dict[str, InjectedFailure] = {}
# (operation, bucket, key or None) for every authenticated request
calls: List[Tuple[str, str, Optional[str]]] = []

app = create_mock_app(
    title="Supabase Storage Mock API",
    description="Supabase storage-compatible mock server for testing the supabase datasource",
    version="1.0.0"
)


def reset() -> None:
    """Drop all objects, injected failures and the call log."""
    buckets.clear()
    failures.clear()
    calls.clear()


def fail(
    operation: str,
    status_code: int = 500,
    error: str = "internal",
    message: str = "Injected failure",
    raw_body: Optional[bytes] = None
) -> None:
    """Make every call to ``operation`` fail until reset().

    Operations: upload, download, remove, list, remove_many.
    """
    failures[operation] = InjectedFailure(status_code, error, message, raw_body)


def put(bucket: str, key: str, content: bytes, content_type: str = "application/octet-stream") -> None:
    """Seed an object directly, bypassing the HTTP API."""
    buckets.setdefault(bucket, {})[key] = StoredObject(content, content_type)


def _begin(operation: str, bucket: str, key: Optional[str], authorization: Optional[str]) -> Optional[Response]:
    """Authenticate, log the call and apply an injected failure if any."""
    check_bearer(authorization, SERVICE_KEY)
    calls.append((operation, bucket, key))

    failure = failures.get(operation)
    if failure is None:
        return None

    logger.info(f"Injected failure for {operation}: {failure.status_code}")
    if failure.raw_body is not None:
        return Response(content=failure.raw_body, status_code=failure.status_code, media_type="text/html")
    return JSONResponse(
        status_code=failure.status_code,
        content={"statusCode": str(failure.status_code), "error": failure.error, "message": failure.message},
    )


def _get_object(bucket: str, key: str) -> StoredObject:
    stored = buckets.get(bucket, {}).get(key)
    if stored is None:
        raise NotFoundError("Object", f"{bucket}/{key}")
    return stored


def _parse_range(header: Optional[str], length: int) -> Optional[Tuple[int, int]]:
    """Inclusive (start, end) for a ``bytes=start-[end]`` header, clamped to the object."""
    if not header:
        return None
    match = RANGE_PATTERN.match(header.strip())
    if not match:
        return None
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else length - 1
    if start >= length or end < start:
        raise MockError(416, "InvalidRange", f"Range {header} not satisfiable for {length} bytes")
    return start, min(end, length - 1)


@app.post("/storage/v1/object/list/{bucket}")
async def list_objects(
    bucket: str = Path(..., description="Bucket name"),
    payload: Dict[str, Any] = Body(...),
    authorization: Optional[str] = Header(None)
):
    """List objects whose names start with prefix + search (case-insensitive)."""
    injected = _begin("list", bucket, payload.get("search"), authorization)
    if injected is not None:
        return injected

    if "prefix" not in payload:
        raise ValidationError("body must have required property 'prefix'")

    needle = f"{payload.get('prefix') or ''}{payload.get('search') or ''}".lower()
    objects = buckets.get(bucket, {})
    entries = [
        stored.entry(name)
        for name, stored in sorted(objects.items())
        if name.lower().startswith(needle)
    ]

    limit = payload.get("limit")
    if isinstance(limit, int):
        entries = entries[:limit]

    return entries


@app.post("/storage/v1/object/{bucket}/{key:path}")
async def upload_object(
    request: Request,
    bucket: str = Path(..., description="Bucket name"),
    key: str = Path(..., description="Object key"),
    authorization: Optional[str] = Header(None),
    content_type: Optional[str] = Header(None),
    x_upsert: Optional[str] = Header(None, alias="x-upsert")
):
    """Store the raw request body under key."""
    injected = _begin("upload", bucket, key, authorization)
    if injected is not None:
        return injected

    objects = buckets.setdefault(bucket, {})
    if key in objects and (x_upsert or "").lower() != "true":
        raise MockError(409, "Duplicate", "The resource already exists", http_status=400)

    content = await request.body()
    objects[key] = StoredObject(content, content_type or "application/octet-stream")

    logger.info(f"Uploaded object: {bucket}/{key} ({len(content)} bytes)")
    return {"Key": f"{bucket}/{key}", "Id": objects[key].id}


@app.get("/storage/v1/object/{bucket}/{key:path}")
async def download_object(
    bucket: str = Path(..., description="Bucket name"),
    key: str = Path(..., description="Object key"),
    authorization: Optional[str] = Header(None),
    range_header: Optional[str] = Header(None, alias="range")
):
    """Return object bytes; a satisfiable Range header gives 206."""
    injected = _begin("download", bucket, key, authorization)
    if injected is not None:
        return injected

    stored = _get_object(bucket, key)
    length = len(stored.content)
    byte_range = _parse_range(range_header, length)

    headers = {"ETag": f'"{stored.etag}"', "Accept-Ranges": "bytes"}
    if byte_range is None:
        return Response(content=stored.content, media_type=stored.content_type, headers=headers)

    start, end = byte_range
    headers["Content-Range"] = f"bytes {start}-{end}/{length}"
    return Response(
        content=stored.content[start:end + 1],
        status_code=206,
        media_type=stored.content_type,
        headers=headers,
    )


@app.delete("/storage/v1/object/{bucket}/{key:path}")
async def delete_object(
    bucket: str = Path(..., description="Bucket name"),
    key: str = Path(..., description="Object key"),
    authorization: Optional[str] = Header(None)
):
    """Delete one object; a missing object is reported as not_found."""
    injected = _begin("remove", bucket, key, authorization)
    if injected is not None:
        return injected

    _get_object(bucket, key)
    del buckets[bucket][key]

    logger.info(f"Deleted object: {bucket}/{key}")
    return {"message": "Successfully deleted"}


@app.delete("/storage/v1/object/{bucket}")
async def delete_objects(
    bucket: str = Path(..., description="Bucket name"),
    payload: Dict[str, Any] = Body(...),
    authorization: Optional[str] = Header(None)
):
    """Delete many objects by name and return the entries that were removed."""
    injected = _begin("remove_many", bucket, None, authorization)
    if injected is not None:
        return injected

    prefixes = payload.get("prefixes")
    if not isinstance(prefixes, list) or not prefixes:
        raise ValidationError("body must have required property 'prefixes'")

    objects = buckets.get(bucket, {})
    removed = []
    for name in prefixes:
        stored = objects.pop(name, None)
        if stored is not None:
            removed.append(stored.entry(name))

    logger.info(f"Deleted {len(removed)} objects from {bucket}")
    return removed


@app.get("/admin/objects/{bucket}")
async def admin_list_objects(bucket: str = Path(..., description="Bucket name")):
    """All objects in a bucket with their sizes (no auth)."""
    objects = buckets.get(bucket, {})
    return {
        "bucket": bucket,
        "object_count": len(objects),
        "total_size": sum(len(stored.content) for stored in objects.values()),
        "objects": {name: len(stored.content) for name, stored in objects.items()},
    }


@app.delete("/admin/reset")
async def reset_all_data():
    """Clear all buckets, failures and the call log (admin endpoint)."""
    object_count = sum(len(objects) for objects in buckets.values())
    reset()
    logger.warning(f"Reset all data: {object_count} objects deleted")
    return {"message": "All data cleared", "objects_deleted": object_count}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "54321"))
    logger.info(f"Starting Supabase Storage Mock Server on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
