"""Time-slicing: transposes a stream of frames into per-band chunk files.

Frame ``t`` contributes chunk ``t`` to every band file, so a band file holds
one spatial slice of the raster across the whole frame stack and can be
composited without loading the other bands.
"""

from __future__ import annotations

import logging
import os
import secrets
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import numpy as np
from tqdm import tqdm

from .constants import DEFAULT_SLICE, RUN_ID_LENGTH, TEMP_FILE_PREFIX, TEMP_FILE_SUFFIX
from .errors import ChronoError, FrameFormatError, LayoutMismatchError
from .format import BandWriter
from .options import Compression, Crop, SliceLength

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RasterLayout:
    """Sample layout of an interleaved 8-bit frame."""

    width: int
    height: int
    channels: int

    @classmethod
    def of(cls, frame: np.ndarray) -> "RasterLayout":
        if frame.dtype != np.uint8:
            raise FrameFormatError(f"Unexpected format. Not an 8 bit image: {frame.dtype}")
        if frame.ndim == 2:
            return cls(frame.shape[1], frame.shape[0], 1)
        if frame.ndim == 3:
            return cls(frame.shape[1], frame.shape[0], frame.shape[2])
        raise FrameFormatError(f"Unsupported frame shape: {frame.shape}")

    @property
    def width_stride(self) -> int:
        return self.channels

    @property
    def height_stride(self) -> int:
        return self.width * self.channels

    @property
    def pixels(self) -> int:
        return self.width * self.height

    @property
    def size(self) -> int:
        return self.height * self.height_stride

    @property
    def shape(self) -> tuple[int, int, int]:
        return (self.height, self.width, self.channels)


@dataclass
class SliceResult:
    paths: list[Path]
    layout: RasterLayout
    count: int
    band_bytes: int
    compressed_bytes: int = 0

    def band_range(self, band: int) -> tuple[int, int]:
        """Byte range ``[start, end)`` of ``band`` within a frame."""
        start = band * self.band_bytes
        return start, min(start + self.band_bytes, self.layout.size)

    def remove(self) -> int:
        """Delete all band files; failures are logged. Returns files removed."""
        removed = 0
        for path in self.paths:
            try:
                path.unlink(missing_ok=True)
                removed += 1
            except OSError as exc:
                logger.warning("Unable to delete file %s: %s", path, exc)
        return removed


def band_paths(temp_dir: Path, run_id: str, count: int) -> list[Path]:
    return [
        temp_dir / f"{TEMP_FILE_PREFIX}-{run_id}-{i:05d}{TEMP_FILE_SUFFIX}"
        for i in range(count)
    ]


class TimeSlicer:
    """Writes frames into banded, compressed chunk files."""

    def __init__(
        self,
        compression: Compression | None = None,
        slicing: SliceLength | None = None,
        threads: int | None = None,
    ):
        self.compression = compression or Compression()
        self.slicing = slicing or SliceLength.parse(DEFAULT_SLICE)
        self.threads = threads or os.cpu_count() or 1

    def write_time_slices(
        self,
        frames: Iterable[np.ndarray],
        temp_dir: Path | str,
        crops: Optional[Sequence[Crop]] = None,
        size_hint: int | None = None,
    ) -> SliceResult:
        """Time-slice ``frames`` into ``temp_dir``.

        Raises LayoutMismatchError on the first frame whose layout differs
        from the first one; files written so far are removed.
        """
        temp_dir = Path(temp_dir)
        if not temp_dir.is_dir():
            raise NotADirectoryError(f"Temp directory does not exist: {temp_dir}")
        run_id = secrets.token_hex(RUN_ID_LENGTH // 2)

        result: SliceResult | None = None
        writers: list[BandWriter] = []
        count = 0

        bar = tqdm(total=size_hint, desc="Time-slicing", unit="img", disable=not logger.isEnabledFor(logging.INFO))
        try:
            with ThreadPoolExecutor(max_workers=self.threads) as pool:
                for index, frame in enumerate(frames):
                    frame = np.asarray(frame)
                    if crops is not None:
                        frame = crops[index].apply(frame)
                    layout = RasterLayout.of(frame)
                    if result is None:
                        band_bytes = self.slicing.bytes(layout)
                        bands = self.slicing.count(layout)
                        paths = band_paths(temp_dir, run_id, bands)
                        writers = [BandWriter(p, self.compression) for p in paths]
                        result = SliceResult(paths, layout, 0, band_bytes)
                        logger.info(
                            "Time-slicing into %d bands of %d bytes (%dx%dx%d)",
                            bands, band_bytes, layout.width, layout.height, layout.channels,
                        )
                    elif layout != result.layout:
                        raise LayoutMismatchError(result.layout, layout, index)

                    samples = np.ascontiguousarray(frame).reshape(-1)
                    view = memoryview(samples)

                    def write(band: int) -> int:
                        start, end = result.band_range(band)
                        return writers[band].write_chunk(view[start:end])

                    result.compressed_bytes += sum(pool.map(write, range(len(writers))))
                    count += 1
                    bar.update(1)
        except BaseException:
            for writer in writers:
                writer.close()
            if result is not None:
                result.remove()
            raise
        finally:
            for writer in writers:
                writer.close()
            bar.close()

        if result is None:
            raise ChronoError("No images found for given pattern")
        result.count = count
        logger.info(
            "Total: %d kb in %d files", result.compressed_bytes // 1024, len(result.paths)
        )
        return result


def write_time_slices(
    frames: Iterable[np.ndarray],
    temp_dir: Path | str,
    compression: Compression | None = None,
    slicing: SliceLength | None = None,
    crops: Optional[Sequence[Crop]] = None,
    threads: int | None = None,
) -> SliceResult:
    return TimeSlicer(compression, slicing, threads).write_time_slices(frames, temp_dir, crops)
