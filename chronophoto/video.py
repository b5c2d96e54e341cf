"""Synthesized video frames from moving windows over the frame stack."""
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable

from tqdm import tqdm

from .chrono import ChronoProcessor, CompositeResult
from .errors import ChronoError
from .options import VideoWindow
from .slicer import SliceResult

logger = logging.getLogger(__name__)


@dataclass
class VideoSummary:
    frames: int = 0
    warnings: int = 0
    failed: list[int] = field(default_factory=list)


def composite_video(
    processor: ChronoProcessor,
    store: SliceResult,
    window: VideoWindow,
    consume: Callable[[int, CompositeResult], None],
    video_threads: int | None = None,
) -> VideoSummary:
    """Composite one output frame per window position and hand it to ``consume``.

    Output frames run in parallel on their own pool; per-pixel work of all
    frames shares the processor's default pool. A frame that fails is logged
    and reported in the summary; the remaining frames still complete.
    """
    count = window.output_count(store.count)
    summary = VideoSummary()
    logger.info("Compositing %d video frames from %d images", count, store.count)

    with ThreadPoolExecutor(max_workers=processor.threads) as pixel_pool:

        def render(index: int) -> int:
            indices = window.frames(index, store.count)
            result = processor.process(store, indices, pool=pixel_pool)
            consume(index, result)
            return result.warnings

        with ThreadPoolExecutor(max_workers=video_threads or os.cpu_count() or 1) as frame_pool:
            futures = {frame_pool.submit(render, i): i for i in range(count)}
            bar = tqdm(total=count, desc="Video frames", unit="frame",
                       disable=not logger.isEnabledFor(logging.INFO))
            for fut, index in futures.items():
                try:
                    summary.warnings += fut.result()
                    summary.frames += 1
                except (ChronoError, OSError, ValueError) as exc:
                    logger.error("Video frame %d failed: %s", index, exc)
                    summary.failed.append(index)
                bar.update(1)
            bar.close()
    return summary
