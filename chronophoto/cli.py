"""Command-line entrypoint for chrono-photo."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .constants import (
    DEFAULT_BACKGROUND,
    DEFAULT_OUTLIER,
    DEFAULT_QUALITY,
    DEFAULT_SLICE,
    DEFAULT_THRESHOLD,
)
from .errors import ChronoError, ParseOptionError
from .options import (
    BackgroundMode,
    Compression,
    Fade,
    FrameRange,
    OutlierSelectionMode,
    SliceLength,
    Threshold,
    VideoWindow,
    Weights,
)
from .pipeline import run_chrono
from .version import get_version_string

logger = logging.getLogger("chronophoto")


def _opt(parse):
    def convert(text: str):
        try:
            return parse(text)
        except ParseOptionError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from exc

    convert.__name__ = getattr(parse, "__qualname__", "option")
    return convert


def _quality(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Quality must be an integer: {text}") from exc
    if not 1 <= value <= 100:
        raise argparse.ArgumentTypeError(f"Quality must be in 1..100: {text}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chrono-photo",
        description="Chronophotography: composite moving subjects of an image sequence over a still background",
        fromfile_prefix_chars="@",
    )
    parser.add_argument("--version", action="version", version=get_version_string())
    parser.add_argument("-p", "--pattern", required=True, help="Input file pattern, e.g. 'frames/IMG_*.jpg'")
    parser.add_argument("-o", "--output", type=Path, required=True, help="Output image path")
    parser.add_argument("-t", "--temp-dir", type=Path, default=None, help="Directory for time-slice files")
    parser.add_argument("--frames", type=_opt(FrameRange.parse), default=None,
                        help="Frame window <start>/<end>[/<step>]")
    parser.add_argument("--threshold", type=_opt(Threshold.parse), default=DEFAULT_THRESHOLD,
                        help="Outlier threshold abs[olute]|rel[ative]/<min>[/<max>]")
    parser.add_argument("--background", type=_opt(BackgroundMode.parse), default=DEFAULT_BACKGROUND,
                        help="Background mode (first|random|average|median)")
    parser.add_argument("--outlier", type=_opt(OutlierSelectionMode.parse), default=DEFAULT_OUTLIER,
                        help="Outlier selection (first|last|extreme|average|forward|backward)")
    parser.add_argument("--weights", type=_opt(Weights.parse), default=None,
                        help="Channel weights for the outlier distance, e.g. 1,1,1,0")
    parser.add_argument("--fade", type=_opt(Fade.parse), default=None,
                        help="Fade curve clamp|repeat/abs|rel/<frame>,<value>/<frame>,<value>[/...]")
    parser.add_argument("--sample", type=int, default=None,
                        help="Maximum number of frames used to estimate the per-pixel distribution")
    parser.add_argument("--slice", dest="slicing", type=_opt(SliceLength.parse), default=DEFAULT_SLICE,
                        help="Time-slicing (rows|pixels|count)/<number>")
    parser.add_argument("--compression", type=_opt(Compression.parse), default="gzip",
                        help="Time-slice compression (gzip|zlib|deflate)[/<level>]")
    parser.add_argument("--video", type=_opt(VideoWindow.parse), default=None,
                        help="Write video frames from moving windows <frames>[/<step>]")
    parser.add_argument("--quality", type=_quality, default=DEFAULT_QUALITY,
                        help="Output quality for lossy formats (1..100)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--threads", type=int, default=None, help="Worker threads (default: CPU count)")
    parser.add_argument("--video-threads", type=int, default=None,
                        help="Parallel video frames (default: CPU count)")
    parser.add_argument("--debug", action="store_true", help="Also write the blend image")
    parser.add_argument("--keep-temp", action="store_true", help="Do not delete time-slice files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    return parser


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)
    logger.debug("Arguments: %s", vars(args))

    try:
        summary = run_chrono(
            args.pattern,
            args.output,
            temp_dir=args.temp_dir,
            frames=args.frames,
            threshold=args.threshold,
            background=args.background,
            outlier=args.outlier,
            weights=args.weights,
            fade=args.fade,
            sample=args.sample,
            slicing=args.slicing,
            compression=args.compression,
            video=args.video,
            quality=args.quality,
            seed=args.seed,
            threads=args.threads,
            video_threads=args.video_threads,
            debug=args.debug,
            keep_temp=args.keep_temp,
        )
    except ChronoError as exc:
        logger.error("%s", exc)
        return 1

    layout = summary.layout
    print(
        f"Composited {args.pattern} -> {args.output}. Frames={summary.frames}, "
        f"Size={layout.height}x{layout.width}, Outputs={len(summary.outputs)}, Warnings={summary.warnings}"
    )
    return 1 if summary.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
