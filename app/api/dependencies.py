"""FastAPI dependencies for services, authentication and upload validation."""

import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.errors import ErrorCode, auth_error
from app.core.logging_config import get_logger
from app.db.session import get_session_factory
from app.services.file_service import FileService
from app.storage import StorageBackend, get_storage


security = HTTPBearer(auto_error=False)
logger = get_logger(__name__)


def get_file_service(
    storage: StorageBackend = Depends(get_storage),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> FileService:
    """Build a FileService around the configured backend and database."""
    return FileService(storage=storage, session_factory=session_factory)


async def require_admin_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Check the Bearer token against ADMIN_TOKEN.

    Raises:
        ServiceError: 401 if the token is missing or wrong, or no token is configured
    """
    if not settings.ADMIN_TOKEN:
        logger.warning("admin_token_not_configured")
        raise auth_error(ErrorCode.AUTH_DISABLED, "Management API is disabled")

    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), settings.ADMIN_TOKEN.encode()
    ):
        logger.warning("admin_token_rejected", provided=credentials is not None)
        raise auth_error(ErrorCode.AUTH_INVALID_TOKEN, "Invalid or missing token")

    return credentials.credentials


async def verify_content_length(
    content_length: Optional[int] = Header(None),
) -> Optional[int]:
    """Pre-validate upload size before reading the body.

    Raises:
        HTTPException: 413 if the declared body exceeds the limit
    """
    if content_length and content_length > settings.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum allowed: {settings.MAX_UPLOAD_SIZE_MB}MB"
        )
    return content_length
