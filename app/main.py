"""Main FastAPI application for the file hosting service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import ServiceError
from app.core.logging_config import setup_logging, get_logger
from app.db.session import init_models
from app.storage import close_storage, get_storage
from app.api.v1 import raw, files, admin, health, metrics
from app.api.middleware import RequestLoggingMiddleware, PerformanceLoggingMiddleware, PrometheusMiddleware
from app.api.exception_handlers import (
    service_error_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)


# Initialize logging system (MUST be done before any logging calls)
setup_logging(debug=settings.is_debug_mode, json_logs=settings.use_json_logs)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events (startup and shutdown).

    Handles:
    - Metadata schema initialization
    - Building the configured storage backend (fails fast on bad config)
    - Closing backend connections on shutdown
    """
    logger.info(
        "application_startup",
        service=settings.SERVICE_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        debug_mode=settings.is_debug_mode,
        log_level=settings.LOG_LEVEL,
        datasource=settings.DATASOURCE_TYPE,
    )

    await init_models()
    logger.info("database_initialized", database_path=settings.DATABASE_PATH)

    storage = get_storage()
    logger.info("datasource_initialized", datasource=storage.name)

    yield

    logger.info("application_shutdown_initiated")
    await close_storage()
    logger.info("application_shutdown", graceful=True)


app = FastAPI(
    title=settings.SERVICE_NAME,
    description="File hosting service with pluggable storage backends",
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Middleware stack (order matters - first added is executed last!)
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PerformanceLoggingMiddleware, slow_request_threshold_ms=1000.0)

app.include_router(raw.router)
app.include_router(files.router)
app.include_router(admin.router)
app.include_router(health.router)
app.include_router(metrics.router)


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.VERSION,
        "documentation": "/docs",
        "health_check": "/api/v1/health/",
        "datasource": settings.DATASOURCE_TYPE,
    }


@app.get("/info")
async def service_info():
    """Current service configuration (non-sensitive data)."""
    return {
        "service": {
            "name": settings.SERVICE_NAME,
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
        },
        "datasource": {
            "type": settings.DATASOURCE_TYPE,
            "strict_errors": settings.DATASOURCE_STRICT_ERRORS,
            "bucket": settings.SUPABASE_BUCKET if settings.DATASOURCE_TYPE == "supabase" else (
                settings.AWS_S3_BUCKET_NAME if settings.DATASOURCE_TYPE == "s3" else None
            ),
        },
        "limits": {
            "max_upload_size_mb": settings.MAX_UPLOAD_SIZE_MB,
        },
        "management_api_enabled": bool(settings.ADMIN_TOKEN),
    }
