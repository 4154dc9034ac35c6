from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for bearer token validation.")
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None


class Settings(BaseSettings):
    """Centralised runtime configuration for the Tubely API."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Tubely API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")
    log_format: Literal["json", "console"] = Field(default="json")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./tubely.db",
        description="SQLAlchemy compatible DSN.",
    )

    storage_backend: Literal["local", "s3"] = Field(default="local", description="Active object storage implementation.")
    local_storage_base_path: Path = Field(default_factory=lambda: Path("assets"), description="Root for the local object store.")
    local_public_base_url: Optional[str] = Field(
        default=None,
        description="Public URL prefix for objects in the local store (file:// URIs when unset).",
    )
    s3_bucket: Optional[str] = None
    s3_region: Optional[str] = None
    s3_endpoint_url: Optional[str] = Field(default=None, description="Override for S3-compatible endpoints.")
    s3_cf_distribution: Optional[str] = Field(default=None, description="CloudFront domain serving the bucket.")

    staging_dir: Optional[Path] = Field(
        default=None,
        description="Directory for per-request temporary files (system temp dir when unset).",
    )
    ffprobe_bin: str = Field(default="ffprobe")
    ffmpeg_bin: str = Field(default="ffmpeg")
    probe_timeout_s: float = Field(default=60.0, gt=0)
    remux_timeout_s: float = Field(default=600.0, gt=0)

    max_video_upload_bytes: int = Field(default=1 << 30, description="Hard limit for video uploads.")
    max_thumbnail_upload_bytes: int = Field(default=10 << 20, description="Hard limit for thumbnail uploads.")

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def is_development(self) -> bool:
        return self.environment_lower in {"development", "dev"}


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "TUBELY_ENV": "TUBELY_ENVIRONMENT",
        "TUBELY_DB_URL": "TUBELY_DATABASE_URL",
        "TUBELY_S3_CF_DISTRO": "TUBELY_S3_CF_DISTRIBUTION",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    settings = Settings()
    secrets = Secrets()

    if settings.environment_lower == "production" and secrets.jwt_secret == "change-me":
        raise ValueError("Production environment must have a non-default JWT secret.")
    if settings.storage_backend == "s3" and not (settings.s3_bucket and settings.s3_region):
        raise ValueError("TUBELY_S3_BUCKET and TUBELY_S3_REGION are required for the s3 storage backend.")

    settings.secrets = secrets
    return settings


__all__ = ["Secrets", "Settings", "get_settings"]
