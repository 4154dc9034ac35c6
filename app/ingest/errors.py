from __future__ import annotations

import enum


class FailureKind(str, enum.Enum):
    staging_failed = "staging_failed"
    probe_failed = "probe_failed"
    dimensions_unavailable = "dimensions_unavailable"
    remux_failed = "remux_failed"
    upload_failed = "upload_failed"


class IngestError(Exception):
    """Base class for every failure raised by the ingestion pipeline."""

    kind: FailureKind

    def __init__(self, message: str, *, detail: str = "") -> None:
        super().__init__(message)
        self.detail = detail


class StagingFailed(IngestError):
    kind = FailureKind.staging_failed


class ProbeFailed(IngestError):
    kind = FailureKind.probe_failed


class DimensionsUnavailable(IngestError):
    kind = FailureKind.dimensions_unavailable


class RemuxFailed(IngestError):
    kind = FailureKind.remux_failed


class UploadFailed(IngestError):
    kind = FailureKind.upload_failed


class IngestionFailed(IngestError):
    """Wraps a step failure that happened after the upload was staged.

    ``cause`` is the step error, ``kind`` mirrors its failure kind and
    ``detail`` carries the captured diagnostic text (usually tool stderr).
    """

    def __init__(self, cause: IngestError) -> None:
        super().__init__(f"ingestion failed: {cause}", detail=cause.detail)
        self.cause = cause
        self.kind = cause.kind


__all__ = [
    "FailureKind",
    "IngestError",
    "StagingFailed",
    "ProbeFailed",
    "DimensionsUnavailable",
    "RemuxFailed",
    "UploadFailed",
    "IngestionFailed",
]
