"""End-to-end chrono-photo run: list, time-slice, composite, save, clean up."""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from .chrono import ChronoProcessor, CompositeResult
from .constants import DEFAULT_QUALITY, DEFAULT_THRESHOLD, TEMP_DIR_NAME
from .errors import ChronoError
from .options import (
    BackgroundMode,
    Compression,
    Crop,
    Fade,
    FrameRange,
    OutlierSelectionMode,
    SliceLength,
    Threshold,
    VideoWindow,
    Weights,
)
from .slicer import RasterLayout, TimeSlicer
from .utils import debug_path, iter_frames, list_files, numbered_path, save_image
from .video import composite_video

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    outputs: list[Path] = field(default_factory=list)
    frames: int = 0
    layout: Optional[RasterLayout] = None
    warnings: int = 0
    failed: list[int] = field(default_factory=list)


def default_temp_dir() -> Path:
    return Path(tempfile.gettempdir()) / TEMP_DIR_NAME


def _save(result: CompositeResult, path: Path, quality: int, debug: bool) -> list[Path]:
    save_image(path, result.image, quality)
    saved = [path]
    if debug:
        dpath = debug_path(path)
        save_image(dpath, result.blend, quality)
        saved.append(dpath)
    return saved


def run_chrono(
    pattern: str,
    output: Path | str,
    temp_dir: Path | str | None = None,
    frames: FrameRange | None = None,
    threshold: Threshold | None = None,
    background: BackgroundMode = BackgroundMode.RANDOM,
    outlier: OutlierSelectionMode = OutlierSelectionMode.EXTREME,
    weights: Weights | None = None,
    fade: Fade | None = None,
    sample: int | None = None,
    slicing: SliceLength | None = None,
    compression: Compression | None = None,
    video: VideoWindow | None = None,
    crops: Optional[Sequence[Crop]] = None,
    quality: int = DEFAULT_QUALITY,
    seed: int | None = None,
    threads: int | None = None,
    video_threads: int | None = None,
    debug: bool = False,
    keep_temp: bool = False,
) -> RunSummary:
    """Composite the images matching ``pattern`` into ``output``.

    With ``video`` set, one output image per window position is written as
    ``<stem>-<index:05d><suffix>``.
    """
    output = Path(output)
    files = list_files(pattern, frames)
    if not files:
        raise ChronoError(f"No images found for pattern {pattern}")
    if crops is not None and len(crops) < len(files):
        raise ChronoError(f"Got {len(crops)} crop rectangles for {len(files)} images")

    temp_dir = Path(temp_dir) if temp_dir is not None else default_temp_dir()
    if not temp_dir.is_dir():
        temp_dir.mkdir(parents=True)
        logger.info("Created temp directory %s", temp_dir)

    compression = compression or Compression()
    processor = ChronoProcessor(
        threshold or Threshold.parse(DEFAULT_THRESHOLD),
        background,
        outlier,
        compression,
        weights,
        fade,
        sample,
        seed,
        threads,
    )
    slicer = TimeSlicer(compression, slicing, threads)
    store = slicer.write_time_slices(iter_frames(files), temp_dir, crops, size_hint=len(files))

    summary = RunSummary(frames=store.count, layout=store.layout)
    try:
        if video is None:
            result = processor.process(store)
            summary.warnings = result.warnings
            summary.outputs = _save(result, output, quality, debug)
        else:
            saved: dict[int, list[Path]] = {}

            def consume(index: int, result: CompositeResult) -> None:
                saved[index] = _save(result, numbered_path(output, index), quality, debug)

            vs = composite_video(processor, store, video, consume, video_threads)
            summary.warnings = vs.warnings
            summary.failed = sorted(vs.failed)
            summary.outputs = [p for i in sorted(saved) for p in saved[i]]
    finally:
        if keep_temp:
            logger.info("Keeping %d band files in %s", len(store.paths), temp_dir)
        else:
            store.remove()

    if summary.warnings:
        logger.warning(
            "%d pixels had no non-outlier frame; the background fell back to %s",
            summary.warnings,
            "frame 0" if background is BackgroundMode.FIRST else "all frames",
        )
    return summary
