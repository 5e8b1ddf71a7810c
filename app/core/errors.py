"""
Service error codes and exceptions.

Every business-level failure that reaches a client goes through ServiceError
so API responses keep one predictable shape.
"""
from enum import Enum
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    """Standardized error codes for the entire application."""

    # Upload errors (UPLOAD_xxx)
    UPLOAD_FILE_TOO_LARGE = "UPLOAD_001"
    UPLOAD_EMPTY_FILE = "UPLOAD_002"

    # File errors (FILE_xxx)
    FILE_NOT_FOUND = "FILE_001"
    METADATA_WRITE_FAILED = "FILE_002"

    # Auth errors (AUTH_xxx)
    AUTH_INVALID_TOKEN = "AUTH_001"
    AUTH_DISABLED = "AUTH_002"

    # Storage errors (STORAGE_xxx)
    STORAGE_WRITE_FAILED = "STORAGE_001"
    STORAGE_DELETE_FAILED = "STORAGE_002"


class ServiceError(HTTPException):
    """
    Base class for business logic errors.

    Converted by FastAPI into a JSON response of the form:

    {
        "code": "STORAGE_001",
        "message": "Could not store file",
        "details": {"key": "abc.png"}
    }
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details or {}
            }
        )
        self.code = code
        self.user_message = message
        self.error_details = details or {}


def upload_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create an upload-related error (400 Bad Request)."""
    return ServiceError(status.HTTP_400_BAD_REQUEST, code, message, details)


def processing_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create a processing-related error (500 Internal Server Error)."""
    return ServiceError(status.HTTP_500_INTERNAL_SERVER_ERROR, code, message, details)


def auth_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create an authentication-related error (401 Unauthorized)."""
    return ServiceError(status.HTTP_401_UNAUTHORIZED, code, message, details)


def not_found_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create a not-found error (404 Not Found)."""
    return ServiceError(status.HTTP_404_NOT_FOUND, code, message, details)
