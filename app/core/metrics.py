"""Prometheus metric definitions."""

from prometheus_client import Counter, Gauge, Histogram, Info, REGISTRY

from app.core.config import settings


service_info = Info(
    'service',
    'Service information',
    registry=REGISTRY
)
service_info.info({
    'name': settings.SERVICE_NAME,
    'version': settings.VERSION,
    'environment': settings.ENVIRONMENT,
    'datasource': settings.DATASOURCE_TYPE,
})


# HTTP Request Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['service', 'method', 'endpoint', 'status'],
    registry=REGISTRY
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['service', 'method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
    registry=REGISTRY
)

http_requests_in_progress = Gauge(
    'http_requests_in_progress',
    'HTTP requests currently in progress',
    ['service', 'method'],
    registry=REGISTRY
)

errors_total = Counter(
    'errors_total',
    'Unhandled errors by type',
    ['service', 'error_type', 'endpoint'],
    registry=REGISTRY
)


# Storage Metrics
storage_operations_total = Counter(
    'storage_operations_total',
    'Storage backend operations',
    ['service', 'backend', 'operation', 'outcome'],  # outcome: success, not_found, error
    registry=REGISTRY
)

file_uploads_total = Counter(
    'file_uploads_total',
    'Total file uploads',
    ['service', 'status'],  # status: stored, rejected, failed
    registry=REGISTRY
)

file_upload_bytes_total = Counter(
    'file_upload_bytes_total',
    'Bytes accepted by uploads',
    ['service'],
    registry=REGISTRY
)

raw_requests_total = Counter(
    'raw_requests_total',
    'Raw file requests',
    ['service', 'outcome'],  # outcome: served, not_found
    registry=REGISTRY
)


def record_storage_operation(backend: str, operation: str, outcome: str) -> None:
    storage_operations_total.labels(
        service=settings.SERVICE_NAME,
        backend=backend,
        operation=operation,
        outcome=outcome,
    ).inc()
