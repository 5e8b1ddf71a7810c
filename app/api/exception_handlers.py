"""
Exception handlers that log every error response with request context.

Response bodies share one shape: ``{"error": ..., "status_code": ...}``.
ServiceError details carry the structured ``{code, message, details}``.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import ServiceError
from app.core.logging_config import get_logger


logger = get_logger(__name__)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle business errors raised by the service layer."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "service_error",
        method=request.method,
        path=str(request.url.path),
        status_code=exc.status_code,
        error_code=exc.code.value,
        error_message=exc.user_message,
        details=exc.error_details,
        client_host=_client_host(request),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "status_code": exc.status_code},
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with structured logging.

    Args:
        request: FastAPI request object
        exc: HTTP exception

    Returns:
        JSON response with error details
    """
    logger.warning(
        "http_exception",
        method=request.method,
        path=str(request.url.path),
        status_code=exc.status_code,
        detail=exc.detail,
        client_host=_client_host(request),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "status_code": exc.status_code},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with structured logging."""
    errors = exc.errors()

    logger.warning(
        "validation_error",
        method=request.method,
        path=str(request.url.path),
        error_count=len(errors),
        fields=[".".join(str(part) for part in error.get("loc", ())) for error in errors],
        client_host=_client_host(request),
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "status_code": 422,
            "details": [
                {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
                for error in errors
            ],
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with structured logging.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSON response with generic error message
    """
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=str(request.url.path),
        error_type=type(exc).__name__,
        error_message=str(exc),
        client_host=_client_host(request),
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "status_code": 500,
        },
    )
