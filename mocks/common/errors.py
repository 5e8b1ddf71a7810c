"""Supabase-style error responses for mock servers."""

from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class MockError(Exception):
    """Base exception for mock server errors.

    Rendered the way Supabase storage reports failures:

        {"statusCode": "404", "error": "not_found", "message": "Object not found"}

    Supabase often sends the HTTP response with status 400 and puts the
    real status in the body, so the two can differ.
    """

    def __init__(
        self,
        status_code: int,
        error_type: str,
        message: str,
        http_status: Optional[int] = None
    ):
        """Initialize mock error.

        Args:
            status_code: Status reported in the body
            error_type: Error type identifier
            message: Human-readable error message
            http_status: HTTP status of the response (defaults to status_code)
        """
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type
        self.message = message
        self.http_status = http_status or status_code

    def body(self) -> dict:
        return {
            "statusCode": str(self.status_code),
            "error": self.error_type,
            "message": self.message,
        }


class NotFoundError(MockError):
    """Object not found, sent as HTTP 400 like Supabase does."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="not_found",
            message=f"{resource} not found: {identifier}",
            http_status=status.HTTP_400_BAD_REQUEST
        )


class ValidationError(MockError):
    """Validation error (400)."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="InvalidRequest",
            message=message
        )


class UnauthorizedError(MockError):
    """Authentication error, sent as HTTP 400 like Supabase does."""

    def __init__(self, message: str = "Invalid or missing authentication"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_type="Unauthorized",
            message=message,
            http_status=status.HTTP_400_BAD_REQUEST
        )


async def mock_error_handler(request: Request, exc: MockError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=exc.body())
