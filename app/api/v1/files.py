"""
File management API endpoints.

Router handles HTTP concerns; FileService handles storage and metadata.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from app.api.dependencies import get_file_service, require_admin_token, verify_content_length
from app.core.logging_config import get_logger
from app.services.file_service import FileService


logger = get_logger(__name__)
router = APIRouter(
    prefix="/api/v1/files",
    tags=["files"],
    dependencies=[Depends(require_admin_token)],
)


@router.post("", status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    password: Optional[str] = Form(None),
    content_length: Optional[int] = Depends(verify_content_length),
    service: FileService = Depends(get_file_service),
):
    """Upload a file to the configured storage backend.

    Args:
        file: File upload
        password: Optional password required to view the file
        content_length: Pre-validated content length (via dependency)
        service: File service (via dependency injection)

    Returns:
        dict: Stored file metadata including its raw URL

    Raises:
        ServiceError: 400 for empty or oversized files, 500 if storing failed
    """
    logger.info(
        "upload_request_received",
        filename=file.filename,
        content_type=file.content_type,
        content_length=content_length,
    )

    data = await file.read()
    return await service.upload(
        filename=file.filename,
        data=data,
        content_type=file.content_type,
        password=password or None,
    )


@router.get("")
async def list_files(
    limit: int = Query(50, ge=1, le=500),
    service: FileService = Depends(get_file_service),
):
    """Most recently uploaded files."""
    return {"files": await service.list_files(limit)}


@router.get("/{name}")
async def get_file(name: str, service: FileService = Depends(get_file_service)):
    """Metadata for one file, with the size the backend reports."""
    return await service.get_file(name)


@router.delete("/{name}")
async def delete_file(name: str, service: FileService = Depends(get_file_service)):
    """Delete a file from storage, then its metadata.

    Raises:
        ServiceError: 404 if unknown, 500 if the backend delete failed
    """
    return await service.delete(name)
