"""Domain entities and ingest utilities reused by the API."""

from app.ingest.aspect_ratio import AspectClassification, AspectRatioProber, classify_ratio
from app.ingest.errors import FailureKind, IngestError, IngestionFailed, StagingFailed
from app.ingest.faststart import FastStartRemuxer
from app.ingest.pipeline import VIDEO_CONTENT_TYPE, OwnerContext, VideoIngestor
from app.ingest.process_runner import ProcessRunner, SubprocessRunner, binary_available
from app.ingest.storage_key import build_storage_key, build_thumbnail_key, new_random_id

__all__ = [
    "AspectClassification",
    "AspectRatioProber",
    "classify_ratio",
    "FailureKind",
    "IngestError",
    "IngestionFailed",
    "StagingFailed",
    "FastStartRemuxer",
    "VIDEO_CONTENT_TYPE",
    "OwnerContext",
    "VideoIngestor",
    "ProcessRunner",
    "SubprocessRunner",
    "binary_available",
    "build_storage_key",
    "build_thumbnail_key",
    "new_random_id",
]
