"""Image file helpers for chrono-photo."""
from __future__ import annotations

import glob
import logging
from pathlib import Path
from typing import Iterator, Sequence

import imageio.v2 as imageio
import numpy as np

from .constants import DEFAULT_QUALITY
from .errors import EncodingError, FrameFormatError
from .options import FrameRange

logger = logging.getLogger(__name__)

LOSSY_SUFFIXES = {".jpg", ".jpeg"}


def list_files(pattern: str, frames: FrameRange | None = None) -> list[Path]:
    """Files matching ``pattern`` in name order, restricted to the frame window."""
    files = sorted(Path(p) for p in glob.glob(pattern) if Path(p).is_file())
    if frames is not None:
        files = [files[i] for i in frames.indices(len(files))]
    return files


def _ensure_u8(frame: np.ndarray) -> np.ndarray:
    arr = np.asarray(frame)
    if arr.dtype != np.uint8:
        raise FrameFormatError(f"Unexpected format. Not an 8 bit image: {arr.dtype}")
    if arr.ndim == 2:
        arr = arr[..., np.newaxis]
    if arr.ndim != 3 or not 1 <= arr.shape[2] <= 4:
        raise FrameFormatError(f"Unsupported frame shape: {arr.shape}")
    return arr


def load_frame(path: Path | str) -> np.ndarray:
    """Load an image as a ``(height, width, channels)`` uint8 array."""
    return _ensure_u8(imageio.imread(path))


def iter_frames(paths: Sequence[Path]) -> Iterator[np.ndarray]:
    for path in paths:
        yield load_frame(path)


def save_image(path: Path | str, image: np.ndarray, quality: int = DEFAULT_QUALITY) -> None:
    """Save a ``(height, width, channels)`` uint8 image.

    Lossy formats are written with ``quality`` (1..100).
    """
    path = Path(path)
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[..., 0]
    kwargs = {}
    if path.suffix.lower() in LOSSY_SUFFIXES:
        if not 1 <= quality <= 100:
            raise ValueError(f"Quality must be in 1..100, got {quality}")
        if image.ndim == 3 and image.shape[2] == 4:
            logger.warning("Dropping alpha channel for %s", path)
            image = image[..., :3]
        kwargs["quality"] = quality
    try:
        imageio.imwrite(path, image, **kwargs)
    except (OSError, ValueError, RuntimeError) as exc:
        raise EncodingError(f"Unable to save output file {path}: {exc}") from exc


def numbered_path(path: Path | str, index: int) -> Path:
    """``out.png`` -> ``out-00003.png``."""
    path = Path(path)
    return path.with_name(f"{path.stem}-{index:05d}{path.suffix}")


def debug_path(path: Path | str) -> Path:
    path = Path(path)
    return path.with_name(f"{path.stem}-debug{path.suffix}")
