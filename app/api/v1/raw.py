"""Raw file serving."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from app.api.dependencies import get_file_service
from app.core.config import settings
from app.core.logging_config import get_logger
from app.core.metrics import raw_requests_total
from app.services.file_service import FileService, RawObjectNotFound


logger = get_logger(__name__)
router = APIRouter(tags=["raw"])


@router.get("/raw/{file_id}")
async def serve_raw(
    file_id: str,
    password: Optional[str] = Query(None),
    service: FileService = Depends(get_file_service),
):
    """Stream a stored file's bytes.

    Missing objects, missing metadata and a missing or wrong password all
    produce the same empty 404, so the response never confirms that a
    protected file exists. The view counter is incremented once, after the
    body has been sent.

    Args:
        file_id: Object key of the file
        password: Password for protected files
        service: File service (via dependency injection)

    Returns:
        StreamingResponse with the stored MIME type and long-lived caching
    """
    try:
        raw = await service.open_raw(file_id, password)
    except RawObjectNotFound:
        raw_requests_total.labels(service=settings.SERVICE_NAME, outcome="not_found").inc()
        return Response(status_code=404)

    raw_requests_total.labels(service=settings.SERVICE_NAME, outcome="served").inc()
    logger.info("raw_file_serving", key=raw.name, file_id=raw.file_id, mimetype=raw.mimetype)

    return StreamingResponse(
        raw.stream,
        media_type=raw.mimetype,
        headers={"Cache-Control": settings.RAW_CACHE_CONTROL},
        background=BackgroundTask(service.record_view, raw.file_id),
    )
