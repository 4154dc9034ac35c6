from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .logging import get_logger


class StorageError(RuntimeError):
    """Raised when the backing object store rejects or cannot complete an operation."""


@dataclass(slots=True)
class StoredObject:
    key: str
    size_bytes: int | None
    content_type: str | None = None
    etag: str | None = None


class ObjectStorage(ABC):
    """Durable home for uploaded binaries, addressed by slash-separated keys."""

    @abstractmethod
    def put_object(self, key: str, source: Path, *, content_type: str) -> StoredObject: ...

    @abstractmethod
    def put_bytes(self, key: str, payload: bytes, *, content_type: str) -> StoredObject: ...

    @abstractmethod
    def url_for(self, key: str) -> str: ...


def _validate_key(key: str) -> str:
    parts = PurePosixPath(key).parts
    if not key or key.startswith("/") or ".." in parts:
        raise ValueError(f"invalid object key: {key!r}")
    return key


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed object storage suitable for development."""

    def __init__(self, base_path: Path, *, public_base_url: str | None = None):
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _resolve(self, key: str) -> Path:
        return (self.base_path / _validate_key(key)).resolve()

    def put_object(self, key: str, source: Path, *, content_type: str) -> StoredObject:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as exc:
            raise StorageError(f"local put failed for {key}: {exc}") from exc
        return StoredObject(key=key, size_bytes=target.stat().st_size, content_type=content_type)

    def put_bytes(self, key: str, payload: bytes, *, content_type: str) -> StoredObject:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as exc:
            raise StorageError(f"local put failed for {key}: {exc}") from exc
        return StoredObject(key=key, size_bytes=len(payload), content_type=content_type)

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{_validate_key(key)}"
        return self._resolve(key).as_uri()


class S3ObjectStorage(ObjectStorage):
    """Amazon S3 (or S3-compatible) storage using a boto3 client."""

    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        region: str,
        cf_distribution: str | None = None,
    ):
        self.client = client
        self.bucket = bucket
        self.region = region
        self.cf_distribution = cf_distribution
        self.logger = get_logger(component="s3_storage", bucket=bucket)

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ObjectStorage":
        if not settings.s3_bucket or not settings.s3_region:
            raise ValueError("S3 storage requires s3_bucket and s3_region")
        session = boto3.session.Session(
            aws_access_key_id=settings.secrets.aws_access_key_id,
            aws_secret_access_key=settings.secrets.aws_secret_access_key,
            region_name=settings.s3_region,
        )
        client = session.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            config=Config(signature_version="s3v4"),
        )
        return cls(
            client,
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            cf_distribution=settings.s3_cf_distribution,
        )

    def put_object(self, key: str, source: Path, *, content_type: str) -> StoredObject:
        _validate_key(key)
        try:
            with source.open("rb") as handle:
                response = self.client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=handle,
                    ContentType=content_type,
                )
        except (ClientError, BotoCoreError) as exc:
            self.logger.error("s3_put_failed", key=key, error=str(exc))
            raise StorageError(f"s3 put failed for {key}: {exc}") from exc
        except OSError as exc:
            raise StorageError(f"cannot read {source} for upload: {exc}") from exc
        return StoredObject(
            key=key,
            size_bytes=source.stat().st_size,
            content_type=content_type,
            etag=response.get("ETag"),
        )

    def put_bytes(self, key: str, payload: bytes, *, content_type: str) -> StoredObject:
        _validate_key(key)
        try:
            response = self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=payload,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            self.logger.error("s3_put_failed", key=key, error=str(exc))
            raise StorageError(f"s3 put failed for {key}: {exc}") from exc
        return StoredObject(key=key, size_bytes=len(payload), content_type=content_type, etag=response.get("ETag"))

    def url_for(self, key: str) -> str:
        _validate_key(key)
        if self.cf_distribution:
            domain = self.cf_distribution.removeprefix("https://").rstrip("/")
            return f"https://{domain}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


def get_storage(settings: Settings) -> ObjectStorage:
    if settings.storage_backend == "local":
        return LocalObjectStorage(
            base_path=Path(settings.local_storage_base_path),
            public_base_url=settings.local_public_base_url,
        )
    if settings.storage_backend == "s3":
        return S3ObjectStorage.from_settings(settings)
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "ObjectStorage",
    "LocalObjectStorage",
    "S3ObjectStorage",
    "StorageError",
    "StoredObject",
    "get_storage",
]
