"""Application configuration using Pydantic Settings."""

import re
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings
from typing import Optional
import os


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Service Identity
    SERVICE_NAME: str = "file-host"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True    # JSON logs (prod) vs pretty console (dev)
    DEBUG: bool = False      # Enable debug mode features

    # Metadata database
    DATABASE_PATH: str = os.path.join(os.getcwd(), "files.db")

    # Datasource selection: "local", "supabase" or "s3"
    DATASOURCE_TYPE: str = "local"
    DATASOURCE_LOCAL_DIRECTORY: str = os.path.join(os.getcwd(), "uploads")

    # Raise provider-reported errors from save/delete instead of only logging them
    DATASOURCE_STRICT_ERRORS: bool = True

    # Supabase storage
    SUPABASE_URL: Optional[str] = None
    SUPABASE_KEY: Optional[str] = None
    SUPABASE_BUCKET: Optional[str] = None
    SUPABASE_TIMEOUT: float = 30.0

    # S3 storage
    AWS_REGION: str = "eu-west-1"
    AWS_S3_BUCKET_NAME: str = "file-host-dev"
    AWS_ENDPOINT_URL: Optional[str] = None  # For MinIO or S3-compatible services

    # Admin API token (Bearer); admin endpoints are disabled when unset
    ADMIN_TOKEN: Optional[str] = None

    # Upload Constraints
    MAX_UPLOAD_SIZE_MB: int = 100

    # Raw file serving
    RAW_CACHE_CONTROL: str = "public, max-age=2628000, stale-while-revalidate=86400"

    @field_validator('DATASOURCE_TYPE')
    @classmethod
    def validate_datasource_type(cls, v: str) -> str:
        """Only the known backends can be selected."""
        v = v.strip().lower()
        if v not in ("local", "supabase", "s3"):
            raise ValueError(
                f"DATASOURCE_TYPE must be one of local, supabase, s3, got '{v}'"
            )
        return v

    @field_validator('SUPABASE_URL', 'AWS_ENDPOINT_URL')
    @classmethod
    def validate_endpoint_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate endpoint URL format if provided."""
        if v is None or v == "":
            return None

        if not re.match(r'^https?://.+', v):
            raise ValueError(
                f"Endpoint URL must start with http:// or https://, got '{v}'"
            )

        return v.rstrip('/')

    @field_validator('AWS_S3_BUCKET_NAME')
    @classmethod
    def validate_s3_bucket_name(cls, v: str) -> str:
        """Validate S3 bucket name follows AWS naming conventions.

        Rules:
        - 3-63 characters long
        - Lowercase letters, numbers, hyphens, and dots only
        - Must start and end with a letter or number
        - No consecutive dots
        """
        if not v:  # Allow empty when another backend is used
            return v

        if not 3 <= len(v) <= 63:
            raise ValueError(f"S3 bucket name must be 3-63 characters long, got {len(v)}")

        if not re.match(r'^[a-z0-9][a-z0-9.-]*[a-z0-9]$', v):
            raise ValueError(
                f"S3 bucket name '{v}' must start/end with letter or number, "
                "and contain only lowercase letters, numbers, hyphens, and dots"
            )

        if '..' in v:
            raise ValueError("S3 bucket name cannot contain consecutive dots")

        return v

    @field_validator('SUPABASE_TIMEOUT')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"SUPABASE_TIMEOUT must be positive, got {v}")
        return v

    @model_validator(mode='after')
    def validate_datasource_configuration(self):
        """Ensure the selected backend has its required configuration."""
        if self.DATASOURCE_TYPE == "supabase":
            missing = [
                name for name in ("SUPABASE_URL", "SUPABASE_KEY", "SUPABASE_BUCKET")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"{', '.join(missing)} must be set when DATASOURCE_TYPE=supabase"
                )
        elif self.DATASOURCE_TYPE == "s3":
            if not self.AWS_S3_BUCKET_NAME:
                raise ValueError(
                    "AWS_S3_BUCKET_NAME must be set when DATASOURCE_TYPE=s3"
                )
            if not self.AWS_REGION:
                raise ValueError(
                    "AWS_REGION must be set when DATASOURCE_TYPE=s3"
                )
        return self

    @property
    def is_debug_mode(self) -> bool:
        """Check if application is in debug mode."""
        return self.DEBUG or self.LOG_LEVEL.upper() == "DEBUG"

    @property
    def use_json_logs(self) -> bool:
        """Determine if JSON logging should be used.

        In production, always use JSON logs.
        In development, allow override via LOG_JSON setting.
        """
        if self.ENVIRONMENT == "production":
            return True
        if self.DEBUG:
            return self.LOG_JSON
        return True

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
