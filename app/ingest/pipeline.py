from __future__ import annotations

import asyncio
import enum
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

from app.core.config import Settings
from app.core.logging import get_logger
from app.core.storage import ObjectStorage, StorageError

from .aspect_ratio import AspectRatioProber
from .errors import (
    DimensionsUnavailable,
    IngestError,
    IngestionFailed,
    ProbeFailed,
    RemuxFailed,
    StagingFailed,
    UploadFailed,
)
from .faststart import FastStartRemuxer, faststart_output_path
from .process_runner import ProcessRunner, SubprocessRunner
from .storage_key import build_storage_key, encode_random_id, new_random_id

VIDEO_CONTENT_TYPE = "video/mp4"
COPY_CHUNK_BYTES = 1024 * 1024

RawUpload = Union[bytes, BinaryIO]


class IngestStage(str, enum.Enum):
    staging = "staging"
    probing = "probing"
    remuxing = "remuxing"
    uploading = "uploading"
    cleanup = "cleanup"
    done = "done"
    failed = "failed"


@dataclass(frozen=True, slots=True)
class OwnerContext:
    owner_id: str
    video_id: str | None = None


def discard(path: Optional[Path]) -> bool:
    """Delete ``path`` if present, returning whether the file is gone afterwards.

    Missing files count as already discarded. Any other filesystem error is
    logged and swallowed.
    """
    if path is None:
        return True
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        get_logger(component="ingest").warning("ingest_cleanup_failed", path=str(path), error=str(exc))
        return False
    return True


class VideoIngestor:
    """Stages, probes, remuxes and uploads one video per :meth:`ingest` call.

    Every local file the pipeline creates is removed before ``ingest`` returns
    or raises. Instances hold no per-request state and may be shared.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        runner: ProcessRunner | None = None,
        *,
        staging_dir: Path | None = None,
        ffprobe_bin: str = "ffprobe",
        ffmpeg_bin: str = "ffmpeg",
        probe_timeout_s: float | None = None,
        remux_timeout_s: float | None = None,
        id_factory: Callable[[], bytes] = new_random_id,
    ):
        runner = runner or SubprocessRunner()
        self.storage = storage
        self.staging_dir = staging_dir
        self.prober = AspectRatioProber(runner, ffprobe_bin=ffprobe_bin, timeout_s=probe_timeout_s)
        self.remuxer = FastStartRemuxer(runner, ffmpeg_bin=ffmpeg_bin, timeout_s=remux_timeout_s)
        self.id_factory = id_factory

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: ObjectStorage,
        runner: ProcessRunner | None = None,
    ) -> "VideoIngestor":
        return cls(
            storage,
            runner,
            staging_dir=settings.staging_dir,
            ffprobe_bin=settings.ffprobe_bin,
            ffmpeg_bin=settings.ffmpeg_bin,
            probe_timeout_s=settings.probe_timeout_s,
            remux_timeout_s=settings.remux_timeout_s,
        )

    def staging_path(self, random_hex: str) -> Path:
        root = self.staging_dir if self.staging_dir is not None else Path(tempfile.gettempdir())
        return root / f"{random_hex}.mp4"

    def stage(self, raw: RawUpload, target: Path) -> Path:
        """Write the upload to ``target``, which must not already exist.

        A partially written file is removed before any error propagates.
        """
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            handle = target.open("xb")
        except OSError as exc:
            raise StagingFailed(f"could not create staging file {target}", detail=str(exc)) from exc
        try:
            with handle:
                if isinstance(raw, (bytes, bytearray, memoryview)):
                    handle.write(raw)
                else:
                    shutil.copyfileobj(raw, handle, COPY_CHUNK_BYTES)
        except (OSError, ValueError) as exc:
            # ValueError: source stream closed mid-copy
            discard(target)
            raise StagingFailed(f"could not stage upload at {target}", detail=str(exc)) from exc
        except BaseException:
            discard(target)
            raise
        return target

    def ingest(self, raw: RawUpload, owner: OwnerContext) -> str:
        """Run the full pipeline and return the public URL of the uploaded video.

        Args:
            raw: Upload body, already validated for size and media type.
            owner: Identity of the uploader, used for log context.

        Returns:
            The URL of the processed video in object storage.

        Raises:
            StagingFailed: The upload could not be written locally.
            IngestionFailed: Probing, remuxing or uploading failed.
        """
        random_id = self.id_factory()
        random_hex = encode_random_id(random_id)
        logger = get_logger(
            component="ingest",
            owner_id=owner.owner_id,
            video_id=owner.video_id,
            random_id=random_hex,
        )

        staged: Path | None = None
        processed: Path | None = None
        failure: IngestError | None = None
        stage = IngestStage.staging
        logger.info("ingest_stage", stage=stage.value)

        try:
            staged = self.stage(raw, self.staging_path(random_hex))

            stage = IngestStage.probing
            logger.info("ingest_stage", stage=stage.value)
            classification = self.prober.classify(staged)

            stage = IngestStage.remuxing
            logger.info("ingest_stage", stage=stage.value, classification=classification.value)
            # a failed remux can leave a partial file at the output path
            processed = faststart_output_path(staged)
            self.remuxer.remux(staged)

            stage = IngestStage.uploading
            key = build_storage_key(random_id, classification)
            logger.info("ingest_stage", stage=stage.value, key=key)
            try:
                self.storage.put_object(key, processed, content_type=VIDEO_CONTENT_TYPE)
            except StorageError as exc:
                raise UploadFailed(f"upload of {key} failed", detail=str(exc)) from exc
        except StagingFailed as exc:
            failure = exc
            raise
        except (ProbeFailed, DimensionsUnavailable, RemuxFailed, UploadFailed) as exc:
            failure = exc
            raise IngestionFailed(exc) from exc
        finally:
            logger.info("ingest_stage", stage=IngestStage.cleanup.value)
            discard(processed)
            discard(staged)
            if failure is not None:
                logger.error(
                    "ingest_stage",
                    stage=IngestStage.failed.value,
                    failed_at=stage.value,
                    kind=failure.kind.value,
                    detail=failure.detail,
                )

        url = self.storage.url_for(key)
        logger.info("ingest_stage", stage=IngestStage.done.value, url=url)
        return url

    async def ingest_async(self, raw: RawUpload, owner: OwnerContext) -> str:
        """Run :meth:`ingest` on a worker thread.

        If the awaiting task is cancelled the worker still runs to completion,
        including its cleanup step.
        """
        return await asyncio.to_thread(self.ingest, raw, owner)


__all__ = [
    "VIDEO_CONTENT_TYPE",
    "IngestStage",
    "OwnerContext",
    "VideoIngestor",
    "discard",
]
