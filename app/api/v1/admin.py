"""Administrative storage endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_file_service, require_admin_token
from app.core.logging_config import get_logger
from app.services.file_service import FileService


logger = get_logger(__name__)
router = APIRouter(
    prefix="/api/v1/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_token)],
)


class ClearStorageRequest(BaseModel):
    """Body of a clear request."""
    include_records: bool = False


@router.get("/stats")
async def get_stats(service: FileService = Depends(get_file_service)):
    """Storage usage and file/view totals."""
    return await service.stats()


@router.post("/clear")
async def clear_storage(
    body: Optional[ClearStorageRequest] = None,
    service: FileService = Depends(get_file_service),
):
    """Delete every stored object, optionally with all metadata records.

    Returns:
        dict: Whether the backend is empty afterwards and how many records were removed
    """
    include_records = body.include_records if body else False
    result = await service.clear_storage(include_records=include_records)

    if not result["cleared"]:
        logger.warning("admin_clear_incomplete", **result)
    return result
