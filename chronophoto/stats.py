"""Robust order statistics over sorted 8-bit samples."""
from __future__ import annotations

import math

import numpy as np

from .constants import QUANTILE_EPS


def quantile(data: np.ndarray, q: float) -> float:
    """Quantile ``q`` of ascending ``data`` at 1-based position ``(n + 1) * q``.

    Interpolates linearly between the neighbouring order statistics unless
    the position is within QUANTILE_EPS of an integer.
    """
    n = len(data)
    if n == 0:
        raise ValueError("quantile of empty sample")
    pos = (n + 1) * q
    lo = math.floor(pos)
    frac = pos - lo
    if frac < QUANTILE_EPS:
        return float(data[min(max(lo, 1), n) - 1])
    if frac > 1.0 - QUANTILE_EPS:
        return float(data[min(max(lo + 1, 1), n) - 1])
    a = float(data[min(max(lo, 1), n) - 1])
    b = float(data[min(max(lo + 1, 1), n) - 1])
    return a + (b - a) * frac


def median(data: np.ndarray) -> float:
    return quantile(data, 0.5)


def quartiles(data: np.ndarray) -> tuple[float, float, float]:
    """Return ``(Q1, median, Q3)`` of ascending ``data``."""
    return quantile(data, 0.25), quantile(data, 0.5), quantile(data, 0.75)


class SampleIndexCache:
    """Fixed random index subsets used to estimate per-pixel distributions.

    One subset per frame count, drawn once per run so every pixel is
    estimated from the same frames.
    """

    def __init__(self, max_samples: int | None, seed: int | None = None):
        self.max_samples = max_samples
        self.seed = seed
        self._cache: dict[int, np.ndarray | None] = {}

    def get(self, frames: int) -> np.ndarray | None:
        """Sorted subset of ``range(frames)``, or None to use all frames."""
        if self.max_samples is None or frames <= self.max_samples:
            return None
        if frames not in self._cache:
            rng = np.random.default_rng([self.seed or 0, frames])
            idx = rng.choice(frames, size=self.max_samples, replace=False)
            self._cache[frames] = np.sort(idx)
        return self._cache[frames]
