from __future__ import annotations

from pathlib import Path

from .errors import RemuxFailed
from .process_runner import ProcessLaunchError, ProcessRunner, ProcessTimeoutError

PROCESSED_SUFFIX = ".processed.mp4"


def faststart_output_path(input_path: Path) -> Path:
    return input_path.with_name(input_path.name + PROCESSED_SUFFIX)


class FastStartRemuxer:
    """Rewrites an MP4 so the moov atom precedes the media data.

    Streams are copied untouched and global metadata is carried over, so the
    output plays identically but can start before it has fully downloaded.
    The input file is never modified.
    """

    def __init__(self, runner: ProcessRunner, *, ffmpeg_bin: str = "ffmpeg", timeout_s: float | None = None):
        self.runner = runner
        self.ffmpeg_bin = ffmpeg_bin
        self.timeout_s = timeout_s

    def command_args(self, input_path: Path, output_path: Path) -> list[str]:
        return [
            "-nostdin",
            "-v",
            "error",
            "-y",
            "-i",
            str(input_path),
            "-movflags",
            "faststart",
            "-map_metadata",
            "0",
            "-codec",
            "copy",
            "-f",
            "mp4",
            str(output_path),
        ]

    def remux(self, input_path: Path) -> Path:
        """Return the path of the remuxed copy of ``input_path``.

        On failure a partial output may remain at :func:`faststart_output_path`;
        removing it is up to the caller.
        """
        output_path = faststart_output_path(input_path)
        try:
            result = self.runner.run(
                self.ffmpeg_bin,
                self.command_args(input_path, output_path),
                timeout_s=self.timeout_s,
            )
        except ProcessLaunchError as exc:
            raise RemuxFailed("ffmpeg could not be launched", detail=str(exc)) from exc
        except ProcessTimeoutError as exc:
            raise RemuxFailed("ffmpeg timed out", detail=exc.stderr or str(exc)) from exc

        if result.exit_code != 0:
            raise RemuxFailed(f"ffmpeg exited with status {result.exit_code}", detail=result.stderr)
        return output_path


__all__ = ["PROCESSED_SUFFIX", "FastStartRemuxer", "faststart_output_path"]
