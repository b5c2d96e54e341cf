"""Helper functions for colors."""
from __future__ import annotations

import numpy as np


def round_half_up(values):
    """Round non-negative color values, halves away from zero."""
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


def blend_into(a: np.ndarray, b: np.ndarray, blend: float) -> None:
    """Blend color ``b`` into ``a`` in place; integer targets are rounded."""
    if blend <= 0.0:
        return
    if blend >= 1.0:
        a[:] = b
        return
    mixed = a + (b.astype(np.float64) - a) * blend
    if np.issubdtype(a.dtype, np.integer):
        mixed = round_half_up(mixed)
    a[:] = mixed


def to_u8(values: np.ndarray, out: np.ndarray) -> np.ndarray:
    """Round float color values into the uint8 array ``out``."""
    out[:] = np.clip(round_half_up(values), 0, 255)
    return out
