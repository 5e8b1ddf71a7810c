"""Shared FastAPI app factory and auth check for the mock servers."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from fastapi import FastAPI

from .errors import MockError, UnauthorizedError, mock_error_handler

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def check_bearer(authorization: Optional[str], expected_key: str) -> None:
    """Reject a request whose Authorization header is not ``Bearer {expected_key}``.

    Supabase answers a bad service key with a 400 carrying a 403 ``statusCode``
    in the body, so UnauthorizedError is raised rather than a plain 401.
    """
    if authorization != f"Bearer {expected_key}":
        raise UnauthorizedError("invalid signature")


def create_mock_app(title: str, description: str, version: str = "1.0.0") -> FastAPI:
    """Build a mock app with provider-style error bodies and a /health route.

    Args:
        title: API title, also used as the logger name
        description: API description
        version: API version reported by /health
    """
    app = FastAPI(title=title, description=description, version=version)
    app.add_exception_handler(MockError, mock_error_handler)

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "service": title,
            "version": version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    logging.getLogger(title).info(f"{title} v{version} ready")
    return app
