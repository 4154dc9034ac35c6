from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from .core.logging import configure_logging
from .core.storage import LocalObjectStorage
from .ingest.aspect_ratio import AspectRatioProber, classify_aspect_ratio
from .ingest.errors import IngestError
from .ingest.faststart import FastStartRemuxer
from .ingest.pipeline import OwnerContext, VideoIngestor
from .ingest.process_runner import SubprocessRunner, binary_available

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "check", False):
        _run_environment_check(args.ffprobe_bin, args.ffmpeg_bin)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    configure_logging(fmt="console")
    try:
        args.func(args)
    except IngestError as exc:
        console.print(f"[red]{exc.kind.value}[/]: {exc}")
        if exc.detail:
            console.print(exc.detail.strip(), markup=False)
        sys.exit(2)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI.

    Returns:
        The argument parser.
    """
    parser = argparse.ArgumentParser(description="Tubely video ingest developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")
    parser.add_argument("--ffprobe-bin", default="ffprobe", help="ffprobe executable (default: ffprobe)")
    parser.add_argument("--ffmpeg-bin", default="ffmpeg", help="ffmpeg executable (default: ffmpeg)")

    subparsers = parser.add_subparsers(dest="command")

    aspect_parser = subparsers.add_parser("aspect", help="Probe a video and print its aspect classification")
    aspect_parser.add_argument("--file", required=True, help="Path to the source media file")
    aspect_parser.set_defaults(func=_cmd_aspect)

    faststart_parser = subparsers.add_parser("faststart", help="Remux a video so playback can start early")
    faststart_parser.add_argument("--file", required=True, help="Path to the source media file")
    faststart_parser.set_defaults(func=_cmd_faststart)

    ingest_parser = subparsers.add_parser("ingest", help="Run the full ingest pipeline into a local object store")
    ingest_parser.add_argument("--file", required=True, help="Path to the source media file")
    ingest_parser.add_argument("--storage-root", default="assets", help="Root directory of the local object store")
    ingest_parser.add_argument("--owner-id", default="cli", help="Owner recorded in log context")
    ingest_parser.add_argument("--staging-dir", default=None, help="Directory for temporary files")
    ingest_parser.set_defaults(func=_cmd_ingest)
    return parser


def _cmd_aspect(args: argparse.Namespace) -> None:
    media_path = Path(args.file).expanduser().resolve()
    prober = AspectRatioProber(SubprocessRunner(), ffprobe_bin=args.ffprobe_bin)
    dimensions = prober.probe_dimensions(media_path)
    console.print_json(
        data={
            "file": str(media_path),
            "width": dimensions.width,
            "height": dimensions.height,
            "ratio": round(dimensions.ratio, 4),
            "classification": classify_aspect_ratio(dimensions.ratio).value,
        }
    )


def _cmd_faststart(args: argparse.Namespace) -> None:
    media_path = Path(args.file).expanduser().resolve()
    remuxer = FastStartRemuxer(SubprocessRunner(), ffmpeg_bin=args.ffmpeg_bin)
    output = remuxer.remux(media_path)
    console.print(f"[green]Remuxed[/] {output}")


def _cmd_ingest(args: argparse.Namespace) -> None:
    media_path = Path(args.file).expanduser().resolve()
    storage = LocalObjectStorage(Path(args.storage_root).expanduser().resolve())
    ingestor = VideoIngestor(
        storage,
        SubprocessRunner(),
        staging_dir=Path(args.staging_dir) if args.staging_dir else None,
        ffprobe_bin=args.ffprobe_bin,
        ffmpeg_bin=args.ffmpeg_bin,
    )
    with media_path.open("rb") as handle:
        url = ingestor.ingest(handle, OwnerContext(owner_id=args.owner_id))
    console.print(f"[green]Uploaded[/] {url}")


def _run_environment_check(ffprobe_bin: str, ffmpeg_bin: str) -> None:
    """Check that the ffmpeg toolchain used by the ingest pipeline is reachable."""
    results = {"ffprobe": binary_available(ffprobe_bin), "ffmpeg": binary_available(ffmpeg_bin)}

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'ok' if ok else 'missing'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected. Install ffmpeg or pass --ffprobe-bin/--ffmpeg-bin.[/]")
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
