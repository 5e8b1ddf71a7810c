"""
Request middleware: trace IDs, request logging, slow request warnings
and Prometheus HTTP metrics.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.config import settings
from app.core.logging_config import get_logger, set_trace_id, clear_trace_id
from app.core.metrics import (
    errors_total,
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)


logger = get_logger(__name__)

TRACE_HEADER = "X-Trace-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a trace ID to every request and log its start and end.

    The trace ID is taken from the X-Trace-ID header when the caller sends
    one, otherwise generated, and is echoed back on the response.
    Password query parameters on raw requests are never logged.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or str(uuid.uuid4())
        set_trace_id(trace_id)

        start_time = time.time()
        method = request.method
        path = request.url.path

        logger.info(
            "request_started",
            method=method,
            path=path,
            client_host=request.client.host if request.client else "unknown",
            user_agent=request.headers.get("user-agent", "unknown"),
            query_params=sorted(request.query_params.keys()),
        )

        try:
            response = await call_next(request)

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=round((time.time() - start_time) * 1000, 2),
            )

            response.headers[TRACE_HEADER] = trace_id
            return response

        except Exception as exc:
            logger.error(
                "request_failed",
                method=method,
                path=path,
                duration_ms=round((time.time() - start_time) * 1000, 2),
                error_type=type(exc).__name__,
                error_message=str(exc),
                exc_info=True,
            )
            raise

        finally:
            clear_trace_id()


class PerformanceLoggingMiddleware(BaseHTTPMiddleware):
    """Log a warning for requests slower than the threshold.

    For streamed raw responses this measures time to the first byte, not
    the full transfer.
    """

    def __init__(self, app: ASGIApp, slow_request_threshold_ms: float = 1000.0):
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        if duration_ms > self.slow_request_threshold_ms:
            logger.warning(
                "slow_request_detected",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
                threshold_ms=self.slow_request_threshold_ms,
                status_code=response.status_code,
            )

        return response


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Record request counts, durations, in-flight requests and errors.

    Raw file paths are collapsed to a single endpoint label so every stored
    file does not create its own time series.
    """

    @staticmethod
    def _endpoint_label(path: str) -> str:
        if path.startswith("/raw/"):
            return "/raw/{file_id}"
        if path.startswith("/api/v1/files/"):
            return "/api/v1/files/{name}"
        return path

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = request.url.path

        # Skip metrics for /metrics endpoint to avoid recursion
        if path == "/metrics":
            return await call_next(request)

        endpoint = self._endpoint_label(path)
        http_requests_in_progress.labels(service=settings.SERVICE_NAME, method=method).inc()

        start_time = time.time()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response

        except Exception as exc:
            errors_total.labels(
                service=settings.SERVICE_NAME,
                error_type=type(exc).__name__,
                endpoint=endpoint
            ).inc()
            raise

        finally:
            http_requests_in_progress.labels(service=settings.SERVICE_NAME, method=method).dec()
            http_requests_total.labels(
                service=settings.SERVICE_NAME,
                method=method,
                endpoint=endpoint,
                status=status_code
            ).inc()
            http_request_duration_seconds.labels(
                service=settings.SERVICE_NAME,
                method=method,
                endpoint=endpoint
            ).observe(time.time() - start_time)
