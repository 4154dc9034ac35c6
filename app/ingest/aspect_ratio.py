from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import DimensionsUnavailable, ProbeFailed
from .process_runner import ProcessLaunchError, ProcessRunner, ProcessTimeoutError

LANDSCAPE_RATIO = 16 / 9
PORTRAIT_RATIO = 9 / 16
RATIO_TOLERANCE = 0.05


class AspectClassification(str, enum.Enum):
    landscape = "landscape"
    portrait = "portrait"
    other = "other"


@dataclass(slots=True, frozen=True)
class VideoDimensions:
    width: int
    height: int

    @property
    def ratio(self) -> float:
        return self.width / self.height


def classify_aspect_ratio(ratio: float) -> AspectClassification:
    """Bucket a width/height ratio into landscape, portrait or other.

    Matching uses a strict absolute difference against 16:9 and 9:16.
    """
    if abs(ratio - LANDSCAPE_RATIO) < RATIO_TOLERANCE:
        return AspectClassification.landscape
    if abs(ratio - PORTRAIT_RATIO) < RATIO_TOLERANCE:
        return AspectClassification.portrait
    return AspectClassification.other


def classify_ratio(width: int, height: int) -> AspectClassification:
    return classify_aspect_ratio(width / height)


def parse_dimensions(raw: str) -> VideoDimensions:
    """Extract the first stream's width and height from ffprobe JSON output.

    Args:
        raw: The stdout of ``ffprobe -of json``.

    Returns:
        The stream dimensions.

    Raises:
        ProbeFailed: The output is not valid JSON.
        DimensionsUnavailable: The output parsed but carries no usable size.
    """
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as exc:
        raise ProbeFailed("ffprobe output is not valid JSON", detail=raw[:500]) from exc

    streams = payload.get("streams") if isinstance(payload, dict) else None
    stream: Any = streams[0] if isinstance(streams, list) and streams else {}
    width = _positive_int(stream.get("width") if isinstance(stream, dict) else None)
    height = _positive_int(stream.get("height") if isinstance(stream, dict) else None)
    if width is None or height is None:
        raise DimensionsUnavailable("unable to determine video dimensions", detail=raw[:500])
    return VideoDimensions(width=width, height=height)


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class AspectRatioProber:
    """Inspects the first video stream of a local file with ffprobe."""

    def __init__(self, runner: ProcessRunner, *, ffprobe_bin: str = "ffprobe", timeout_s: float | None = None):
        self.runner = runner
        self.ffprobe_bin = ffprobe_bin
        self.timeout_s = timeout_s

    def command_args(self, path: Path) -> list[str]:
        return [
            "-v",
            "error",
            "-select_streams",
            "v:0",
            "-show_entries",
            "stream=width,height",
            "-of",
            "json",
            str(path),
        ]

    def probe_dimensions(self, path: Path) -> VideoDimensions:
        try:
            result = self.runner.run(self.ffprobe_bin, self.command_args(path), timeout_s=self.timeout_s)
        except ProcessLaunchError as exc:
            raise ProbeFailed("ffprobe could not be launched", detail=str(exc)) from exc
        except ProcessTimeoutError as exc:
            raise ProbeFailed("ffprobe timed out", detail=exc.stderr or str(exc)) from exc

        if result.exit_code != 0:
            raise ProbeFailed(f"ffprobe exited with status {result.exit_code}", detail=result.stderr)
        return parse_dimensions(result.stdout)

    def classify(self, path: Path) -> AspectClassification:
        dimensions = self.probe_dimensions(path)
        return classify_aspect_ratio(dimensions.ratio)


__all__ = [
    "LANDSCAPE_RATIO",
    "PORTRAIT_RATIO",
    "RATIO_TOLERANCE",
    "AspectClassification",
    "VideoDimensions",
    "AspectRatioProber",
    "classify_aspect_ratio",
    "classify_ratio",
    "parse_dimensions",
]
