from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from app.core.storage import LocalObjectStorage
from app.ingest.aspect_ratio import AspectClassification, AspectRatioProber
from app.ingest.errors import IngestionFailed, ProbeFailed
from app.ingest.faststart import FastStartRemuxer
from app.ingest.pipeline import OwnerContext, VideoIngestor
from app.ingest.process_runner import SubprocessRunner, binary_available

pytestmark = pytest.mark.skipif(
    not (binary_available("ffmpeg") and binary_available("ffprobe")),
    reason="ffmpeg and ffprobe are required",
)


def _render_clip(target: Path, width: int, height: int) -> Path:
    command = [
        "ffmpeg",
        "-nostdin",
        "-v",
        "error",
        "-y",
        "-f",
        "lavfi",
        "-i",
        f"testsrc=size={width}x{height}:rate=10:duration=1",
        "-pix_fmt",
        "yuv420p",
        str(target),
    ]
    subprocess.run(command, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    return target


def _moov_before_mdat(path: Path) -> bool:
    data = path.read_bytes()
    return 0 <= data.find(b"moov") < data.find(b"mdat")


@pytest.mark.parametrize(
    "width, height, expected",
    [
        (128, 72, AspectClassification.landscape),
        (72, 128, AspectClassification.portrait),
        (96, 96, AspectClassification.other),
    ],
)
def test_probe_classifies_rendered_clips(tmp_path: Path, width, height, expected):
    clip = _render_clip(tmp_path / "clip.mp4", width, height)
    prober = AspectRatioProber(SubprocessRunner())

    dimensions = prober.probe_dimensions(clip)

    assert (dimensions.width, dimensions.height) == (width, height)
    assert prober.classify(clip) is expected


def test_probe_rejects_non_media(tmp_path: Path):
    bogus = tmp_path / "notes.mp4"
    bogus.write_text("definitely not a video")

    with pytest.raises(ProbeFailed) as excinfo:
        AspectRatioProber(SubprocessRunner()).probe_dimensions(bogus)

    assert excinfo.value.detail


def test_remux_moves_index_to_front(tmp_path: Path):
    clip = _render_clip(tmp_path / "clip.mp4", 128, 72)

    output = FastStartRemuxer(SubprocessRunner()).remux(clip)

    assert output.name == "clip.mp4.processed.mp4"
    assert _moov_before_mdat(output)
    assert clip.exists()


@pytest.mark.parametrize("width, height, prefix", [(128, 72, "landscape"), (72, 128, "portrait")])
def test_full_ingest_into_local_store(tmp_path: Path, width, height, prefix):
    clip = _render_clip(tmp_path / "source.mp4", width, height)
    staging = tmp_path / "staging"
    store = tmp_path / "store"
    ingestor = VideoIngestor(LocalObjectStorage(store), SubprocessRunner(), staging_dir=staging)

    with clip.open("rb") as handle:
        url = ingestor.ingest(handle, OwnerContext(owner_id="user-1"))

    uploaded = list((store / "videos" / prefix).glob("*.mp4"))
    assert len(uploaded) == 1
    assert url == uploaded[0].resolve().as_uri()
    assert len(uploaded[0].stem) == 64
    assert _moov_before_mdat(uploaded[0])
    assert list(staging.iterdir()) == []


def test_full_ingest_of_garbage_leaves_nothing_behind(tmp_path: Path):
    staging = tmp_path / "staging"
    store = tmp_path / "store"
    ingestor = VideoIngestor(LocalObjectStorage(store), SubprocessRunner(), staging_dir=staging)

    with pytest.raises(IngestionFailed):
        ingestor.ingest(b"not a video at all", OwnerContext(owner_id="user-1"))

    assert list(staging.iterdir()) == []
    assert not store.exists() or not any(store.rglob("*.mp4"))
