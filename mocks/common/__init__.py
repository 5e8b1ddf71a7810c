"""Common utilities for all mock servers."""

from .base import check_bearer, create_mock_app
from .errors import MockError, NotFoundError, ValidationError, UnauthorizedError

__all__ = [
    "check_bearer",
    "create_mock_app",
    "MockError",
    "NotFoundError",
    "ValidationError",
    "UnauthorizedError",
]
