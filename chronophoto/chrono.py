"""Outlier compositing of time-sliced data produced by :mod:`chronophoto.slicer`.

Every output pixel is computed from its samples across all consumed frames:
a robust center (median, plus inter-quartile scale in relative mode) is
estimated per channel, frames whose weighted distance from the center reaches
the threshold are outliers, and outliers are blended over a background
chosen by the background mode.
"""

from __future__ import annotations

import logging
import math
import os
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from tqdm import tqdm

from .color import blend_into, round_half_up, to_u8
from .constants import PIXEL_BATCH
from .errors import ChronoError, ParseOptionError
from .format import read_band
from .options import (
    BackgroundMode,
    Compression,
    Fade,
    OutlierSelectionMode,
    Threshold,
    Weights,
)
from .slicer import RasterLayout, SliceResult
from .stats import SampleIndexCache, median, quartiles

logger = logging.getLogger(__name__)

ALPHA_CHANNEL = 3


@dataclass
class CompositeResult:
    image: np.ndarray
    blend: np.ndarray
    warnings: int = 0
    outliers: int = 0
    frames: int = 0


class PixelScratch:
    """Per-worker buffers reused for every pixel of a batch.

    Holds no state that carries meaning from one pixel to the next, except
    the index permutation used by the random background, which stays a
    valid permutation at all times.
    """

    def __init__(self, frames: int, channels: int, samples: int, rng: np.random.Generator):
        self.frames = frames
        self.channels = channels
        self.sorted = np.empty((samples, channels), dtype=np.uint8)
        self.diff = np.empty((frames, channels), dtype=np.float64)
        self.dist = np.empty((frames,), dtype=np.float64)
        self.center = np.zeros((channels,), dtype=np.float64)
        self.scale = np.ones((channels,), dtype=np.float64)
        self.factor = np.empty((channels,), dtype=np.float64)
        self.arange = np.arange(frames)
        self.perm = np.arange(frames)
        self.pos = np.arange(frames)
        self.rng = rng


class ChronoProcessor:
    """Core processor for outlier compositing."""

    def __init__(
        self,
        threshold: Threshold,
        background: BackgroundMode = BackgroundMode.RANDOM,
        outlier: OutlierSelectionMode = OutlierSelectionMode.EXTREME,
        compression: Compression | None = None,
        weights: Weights | None = None,
        fade: Fade | None = None,
        sample: int | None = None,
        seed: int | None = None,
        threads: int | None = None,
    ):
        if sample is not None and sample < 1:
            raise ParseOptionError(f"Sample count must be positive: {sample}")
        self.threshold = threshold
        self.background = background
        self.outlier = outlier
        self.compression = compression or Compression()
        self.weights = weights or Weights()
        self.fade = fade
        self.seed = seed if seed is not None else int(np.random.SeedSequence().entropy)
        self.threads = threads or os.cpu_count() or 1
        self.samples = SampleIndexCache(sample, self.seed)
        self._threshold_sq = threshold.min * threshold.min

    # -- driver ---------------------------------------------------------------

    def process(
        self,
        store: SliceResult,
        indices: Optional[Sequence[int]] = None,
        pool: Executor | None = None,
    ) -> CompositeResult:
        """Composite all frames of ``store``, or the ascending ``indices`` subset."""
        layout = store.layout
        frames = store.count if indices is None else len(indices)
        if frames == 0:
            raise ChronoError("No frames selected for compositing")
        offset = int(indices[0]) if indices is not None else 0
        result = self._new_result(layout, frames)
        image = result.image.reshape(-1)
        blend = result.blend.reshape(-1)

        own_pool = pool is None
        pool = pool or ThreadPoolExecutor(max_workers=self.threads)
        try:
            bar = tqdm(
                store.paths,
                desc="Compositing",
                unit="band",
                leave=False,
                disable=not logger.isEnabledFor(logging.INFO),
            )
            for band, path in enumerate(bar):
                data = read_band(path, self.compression, indices)
                if data.shape[0] != frames:
                    raise ChronoError(
                        f"Band {path} holds {data.shape[0]} frames, expected {frames}"
                    )
                start, end = store.band_range(band)
                if data.shape[1] != end - start:
                    raise ChronoError(
                        f"Band {path} holds {data.shape[1]} bytes per frame, expected {end - start}"
                    )
                cube = data.reshape(frames, -1, layout.channels)
                self._process_cube(
                    cube, image[start:end], blend[start:end], result, band, offset, pool
                )
        finally:
            if own_pool:
                pool.shutdown()
        return result

    def process_frames(
        self, frames: np.ndarray, offset: int = 0, pool: Executor | None = None
    ) -> CompositeResult:
        """Composite a small in-memory stack of shape ``(frames, height, width[, channels])``."""
        frames = np.asarray(frames)
        if frames.ndim == 3:
            frames = frames[..., np.newaxis]
        layout = RasterLayout.of(frames[0])
        result = self._new_result(layout, frames.shape[0])
        cube = np.ascontiguousarray(frames).reshape(frames.shape[0], -1, layout.channels)
        own_pool = pool is None
        pool = pool or ThreadPoolExecutor(max_workers=self.threads)
        try:
            self._process_cube(
                cube, result.image.reshape(-1), result.blend.reshape(-1), result, 0, offset, pool
            )
        finally:
            if own_pool:
                pool.shutdown()
        return result

    def _new_result(self, layout: RasterLayout, frames: int) -> CompositeResult:
        return CompositeResult(
            image=np.zeros(layout.shape, dtype=np.uint8),
            blend=np.zeros(layout.shape, dtype=np.uint8),
            frames=frames,
        )

    def fade_table(self, frames: int, offset: int = 0) -> np.ndarray | None:
        if self.fade is None:
            return None
        return np.array([self.fade.at(i, frames, offset) for i in range(frames)], dtype=np.float64)

    def _process_cube(self, cube, image, blend, result, band, offset, pool) -> None:
        frames, pixels, channels = cube.shape
        image = image.reshape(pixels, channels)
        blend = blend.reshape(pixels, channels)
        fades = self.fade_table(frames, offset)
        subset = self.samples.get(frames)

        def work(batch: int, p0: int, p1: int) -> tuple[int, int]:
            rng = np.random.default_rng([self.seed, offset, band, batch])
            scratch = self.new_scratch(frames, channels, subset, rng)
            warnings = outliers = 0
            for p in range(p0, p1):
                value, has_outliers, warning = self.calc_pixel(
                    cube[:, p, :], image[p], scratch, fades, subset
                )
                blend[p, :ALPHA_CHANNEL] = value
                if channels > ALPHA_CHANNEL:
                    blend[p, ALPHA_CHANNEL:] = 255
                outliers += has_outliers
                warnings += warning
            return warnings, outliers

        futures = [
            pool.submit(work, batch, p0, min(p0 + PIXEL_BATCH, pixels))
            for batch, p0 in enumerate(range(0, pixels, PIXEL_BATCH))
        ]
        for fut in futures:
            warnings, outliers = fut.result()
            result.warnings += warnings
            result.outliers += outliers

    def new_scratch(
        self, frames: int, channels: int, subset=None, rng: np.random.Generator | None = None
    ) -> PixelScratch:
        samples = frames if subset is None else len(subset)
        return PixelScratch(frames, channels, samples, rng or np.random.default_rng(self.seed))

    # -- per pixel ------------------------------------------------------------

    def calc_pixel(
        self,
        samples: np.ndarray,
        pixel: np.ndarray,
        scratch: PixelScratch,
        fades: np.ndarray | None = None,
        subset: np.ndarray | None = None,
    ) -> tuple[int, bool, bool]:
        """Composite one pixel.

        ``samples`` is the ``(frames, channels)`` sample matrix of the pixel;
        the result color is written to ``pixel``. Returns the blend byte,
        whether outliers were found, and whether the background mode had to
        fall back because every frame is an outlier.
        """
        frames, channels = samples.shape
        weights = self.weights.for_channels(channels)

        self._estimate_center(samples, scratch, weights, subset)

        factor = scratch.factor
        if self.threshold.absolute:
            factor[:] = weights
        else:
            np.multiply(weights, scratch.scale, out=factor)
        diff = scratch.diff
        np.subtract(samples, scratch.center, out=diff)
        np.multiply(diff, factor, out=diff)
        np.square(diff, out=diff)
        dist = scratch.dist
        np.dot(diff, np.sign(weights), out=dist)

        outliers = np.flatnonzero(dist >= self._threshold_sq)
        warning = self._fill_background(samples, pixel, scratch, outliers)
        if len(outliers) == 0:
            return 0, False, warning

        if self.outlier.is_all:
            order = outliers if self.outlier is OutlierSelectionMode.ALL_FORWARD else outliers[::-1]
            keep = 1.0
            for i in order:
                value = self._fade(fades, i) * self.threshold.blend_value(math.sqrt(dist[i]))
                blend_into(pixel, samples[i], value)
                keep *= 1.0 - value
            return int(round_half_up(255.0 * (1.0 - keep))), True, warning

        sample, distance, fade = self._select_outlier(samples, dist, outliers, fades)
        value = fade * self.threshold.blend_value(distance)
        blend_into(pixel, sample, value)
        return int(round_half_up(255.0 * value)), True, warning

    def _estimate_center(self, samples, scratch, weights, subset) -> None:
        srt = scratch.sorted
        if subset is None:
            srt[:] = samples
        else:
            np.take(samples, subset, axis=0, out=srt)
        srt.sort(axis=0)
        all_channels = self.background is BackgroundMode.MEDIAN
        for ch in range(samples.shape[1]):
            if weights[ch] == 0.0 and not all_channels:
                continue
            col = srt[:, ch]
            if self.threshold.absolute:
                scratch.center[ch] = median(col)
            else:
                q1, med, q3 = quartiles(col)
                scratch.center[ch] = med
                iqr = q3 - q1
                scratch.scale[ch] = 1.0 / iqr if iqr != 0.0 else 1.0

    def _fill_background(self, samples, pixel, scratch, outliers) -> bool:
        frames = samples.shape[0]
        num_outliers = len(outliers)
        everything = num_outliers == frames
        mode = self.background

        if mode is BackgroundMode.FIRST:
            if everything:
                pixel[:] = samples[0]
                return True
            gaps = np.flatnonzero(outliers != scratch.arange[:num_outliers])
            first = gaps[0] if len(gaps) else num_outliers
            pixel[:] = samples[first]
            return False

        if mode is BackgroundMode.RANDOM:
            if everything:
                pixel[:] = samples[scratch.rng.integers(frames)]
                return True
            perm, pos = scratch.perm, scratch.pos
            last = frames - 1
            for o in outliers:
                p, q = pos[o], perm[last]
                perm[p], perm[last] = q, o
                pos[q], pos[o] = p, last
                last -= 1
            pixel[:] = samples[perm[scratch.rng.integers(frames - num_outliers)]]
            return False

        if mode is BackgroundMode.AVERAGE:
            mean = samples.mean(axis=0, dtype=np.float64)
            if 0 < num_outliers < frames:
                outlier_sum = samples[outliers].sum(axis=0, dtype=np.float64)
                mean = mean * frames / (frames - num_outliers) - outlier_sum / frames
            to_u8(mean, pixel)
            return everything

        to_u8(scratch.center, pixel)
        return False

    def _select_outlier(self, samples, dist, outliers, fades):
        mode = self.outlier
        if mode is OutlierSelectionMode.AVERAGE and len(outliers) > 1:
            sample = round_half_up(samples[outliers].mean(axis=0, dtype=np.float64))
            distance = float(np.sqrt(dist[outliers]).mean())
            fade = 1.0 if fades is None else float(fades[outliers].mean())
            return sample, distance, fade
        if mode is OutlierSelectionMode.LAST:
            i = outliers[-1]
        elif mode is OutlierSelectionMode.EXTREME:
            i = outliers[np.argmax(dist[outliers])]
        else:
            i = outliers[0]
        return samples[i], math.sqrt(dist[i]), self._fade(fades, i)

    @staticmethod
    def _fade(fades: np.ndarray | None, frame: int) -> float:
        return 1.0 if fades is None else float(fades[frame])
