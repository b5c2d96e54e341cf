"""Option value types for chrono-photo.

All types are immutable and can be parsed from the slash-separated strings
used on the command line, e.g. ``abs/0.05/0.2`` or ``rows/4``.
"""
from __future__ import annotations

import math
from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np

from .constants import (
    COLOR_RANGE,
    COMPRESSION_DEFLATE,
    COMPRESSION_GZIP,
    COMPRESSION_ZLIB,
    DEFAULT_COMPRESSION_LEVEL,
    DEFAULT_WEIGHTS,
    MAX_CHANNELS,
)
from .errors import ParseOptionError


def _split(text: str, what: str, min_parts: int, max_parts: int | None = None) -> list[str]:
    parts = [p.strip() for p in text.strip().split("/")]
    if len(parts) < min_parts or (max_parts is not None and len(parts) > max_parts):
        raise ParseOptionError(f"Unexpected format in {what}: {text}")
    return parts


def _number(text: str, what: str, kind=float):
    try:
        return kind(text)
    except ValueError as exc:
        raise ParseOptionError(f"Unable to parse {what}: {text}") from exc


class _ParseEnum(Enum):
    @classmethod
    def parse(cls, text: str):
        key = text.strip().lower()
        for member in cls:
            if member.value == key:
                return member
        choices = "|".join(m.value for m in cls)
        raise ParseOptionError(f"Not a valid {cls._label()}: {text}. Must be one of ({choices})")

    @classmethod
    def _label(cls) -> str:
        return cls.__name__


class BackgroundMode(_ParseEnum):
    """Background pixel selection, i.e. what is shown where no outlier is found."""

    FIRST = "first"
    RANDOM = "random"
    AVERAGE = "average"
    MEDIAN = "median"

    @classmethod
    def _label(cls) -> str:
        return "background pixel selection mode"


class OutlierSelectionMode(_ParseEnum):
    """Selection of the outlier sample(s) blended over the background."""

    FIRST = "first"
    LAST = "last"
    EXTREME = "extreme"
    AVERAGE = "average"
    ALL_FORWARD = "forward"
    ALL_BACKWARD = "backward"

    @classmethod
    def _label(cls) -> str:
        return "outlier selection mode"

    @property
    def is_all(self) -> bool:
        return self in (OutlierSelectionMode.ALL_FORWARD, OutlierSelectionMode.ALL_BACKWARD)


class FadeMode(_ParseEnum):
    CLAMP = "clamp"
    REPEAT = "repeat"

    @classmethod
    def _label(cls) -> str:
        return "fade mode"


def _parse_absolute(text: str, what: str) -> bool:
    key = text.lower()
    if key in ("abs", "absolute"):
        return True
    if key in ("rel", "relative"):
        return False
    raise ParseOptionError(f"Not a valid {what} mode: {text}. Must be one of (abs[olute]|rel[ative])")


@dataclass(frozen=True)
class Threshold:
    """Outlier threshold with a linear blend ramp between ``min`` and ``max``.

    For absolute thresholds, ``min`` and ``max`` are distances in color
    units (0..255); use :meth:`abs` or :meth:`parse` to give them as
    fractions of the color range. For relative thresholds they are in units
    of the inter-quartile range.
    """

    absolute: bool
    min: float
    max: float
    scale: float = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not (math.isfinite(self.min) and math.isfinite(self.max)):
            raise ParseOptionError(f"Threshold must be finite: {self.min}, {self.max}")
        if self.max < self.min:
            raise ParseOptionError(
                f"Upper threshold {self.max} must not be below lower threshold {self.min}"
            )
        scale = 1.0 / (self.max - self.min) if self.max > self.min else math.inf
        object.__setattr__(self, "scale", scale)

    @classmethod
    def abs(cls, min: float, max: float | None = None) -> "Threshold":
        """Absolute threshold from fractions of the color range."""
        max = min if max is None else max
        return cls(True, min * COLOR_RANGE, max * COLOR_RANGE)

    @classmethod
    def rel(cls, min: float, max: float | None = None) -> "Threshold":
        return cls(False, min, min if max is None else max)

    @classmethod
    def parse(cls, text: str) -> "Threshold":
        parts = _split(text, "threshold", 2, 3)
        absolute = _parse_absolute(parts[0], "outlier detection")
        low = _number(parts[1], "lower threshold for outlier detection")
        high = _number(parts[2], "upper threshold for outlier detection") if len(parts) > 2 else None
        return cls.abs(low, high) if absolute else cls.rel(low, high)

    def blend_value(self, dist: float) -> float:
        if dist <= self.min:
            return 0.0
        if dist >= self.max:
            return 1.0
        return (dist - self.min) * self.scale


@dataclass(frozen=True)
class Fade:
    """Piecewise-linear temporal weighting of outlier blend strength."""

    mode: FadeMode
    absolute: bool
    frames: Tuple[int, ...]
    values: Tuple[float, ...]

    def __post_init__(self):
        if len(self.frames) < 2 or len(self.frames) != len(self.values):
            raise ParseOptionError("Fade requires at least two (frame, value) keyframes")
        if any(b <= a for a, b in zip(self.frames, self.frames[1:])):
            raise ParseOptionError(f"Fade keyframes must be strictly increasing: {self.frames}")

    @classmethod
    def from_keyframes(
        cls, mode: FadeMode, absolute: bool, keyframes: Sequence[Tuple[int, float]]
    ) -> "Fade":
        ordered = sorted(keyframes, key=lambda kv: kv[0])
        return cls(
            mode,
            absolute,
            tuple(int(f) for f, _ in ordered),
            tuple(float(v) for _, v in ordered),
        )

    @classmethod
    def parse(cls, text: str) -> "Fade":
        """Parse ``clamp|repeat/abs|rel/frame,value/frame,value[/...]``."""
        parts = _split(text, "fade", 4)
        mode = FadeMode.parse(parts[0])
        absolute = _parse_absolute(parts[1], "fade")
        keyframes = []
        for kf in parts[2:]:
            pair = kf.split(",")
            if len(pair) != 2:
                raise ParseOptionError(f"Unexpected fade keyframe, expected <frame>,<value>: {kf}")
            keyframes.append((_number(pair[0], "fade frame", int), _number(pair[1], "fade value")))
        return cls.from_keyframes(mode, absolute, keyframes)

    def get(self, frame: int) -> float:
        first, last = self.frames[0], self.frames[-1]
        if self.mode is FadeMode.REPEAT:
            frame = first + (frame - first) % (last - first + 1)
        if frame <= first:
            return self.values[0]
        if frame >= last:
            return self.values[-1]
        i = bisect_right(self.frames, frame) - 1
        f0, f1 = self.frames[i], self.frames[i + 1]
        v0, v1 = self.values[i], self.values[i + 1]
        return v0 + (v1 - v0) * (frame - f0) / (f1 - f0)

    def at(self, frame: int, total: int, offset: int = 0) -> float:
        """Fade for local ``frame`` of ``total`` frames starting at source ``offset``."""
        if self.absolute:
            return self.get(offset + frame)
        return self.get(total - frame - 1)


@dataclass(frozen=True)
class Weights:
    """Per-channel weights of the outlier distance."""

    values: Tuple[float, ...] = DEFAULT_WEIGHTS

    def __post_init__(self):
        vals = tuple(float(v) for v in self.values)
        if not 1 <= len(vals) <= MAX_CHANNELS:
            raise ParseOptionError(f"Expected 1 to {MAX_CHANNELS} channel weights, got {len(vals)}")
        vals = vals + (0.0,) * (MAX_CHANNELS - len(vals))
        object.__setattr__(self, "values", vals)

    @classmethod
    def parse(cls, text: str) -> "Weights":
        return cls(tuple(_number(v, "channel weight") for v in text.replace("/", ",").split(",")))

    def for_channels(self, channels: int) -> np.ndarray:
        return np.asarray(self.values[:channels], dtype=np.float64)


class SliceKind(_ParseEnum):
    ROWS = "rows"
    PIXELS = "pixels"
    COUNT = "count"

    @classmethod
    def _label(cls) -> str:
        return "slicing mode"


@dataclass(frozen=True)
class SliceLength:
    """Slicing policy of the band store: rows, pixels or total band count."""

    kind: SliceKind
    n: int

    def __post_init__(self):
        if self.n < 1:
            raise ParseOptionError(f"Slicing number must be positive: {self.n}")

    @classmethod
    def parse(cls, text: str) -> "SliceLength":
        parts = _split(text, "slicing", 2, 2)
        return cls(SliceKind.parse(parts[0]), _number(parts[1], "slicing numeric part", int))

    def bytes(self, layout) -> int:
        """Bytes per band for the given layout."""
        if self.kind is SliceKind.ROWS:
            return self.n * layout.height_stride
        if self.kind is SliceKind.PIXELS:
            return self.n * layout.width_stride
        pixels = -(-layout.pixels // self.n)
        return pixels * layout.width_stride

    def count(self, layout) -> int:
        """Number of bands for the given layout."""
        return -(-layout.size // self.bytes(layout))


@dataclass(frozen=True)
class Compression:
    """Chunk compression scheme and level."""

    scheme: str = COMPRESSION_GZIP
    level: int = DEFAULT_COMPRESSION_LEVEL

    def __post_init__(self):
        if self.scheme not in (COMPRESSION_GZIP, COMPRESSION_ZLIB, COMPRESSION_DEFLATE):
            raise ParseOptionError(
                f"Not a compression: {self.scheme}. Must be one of (gzip|zlib|deflate)"
            )
        if not 0 <= self.level <= 9:
            raise ParseOptionError(f"Compression level must be in 0..9: {self.level}")

    @classmethod
    def parse(cls, text: str) -> "Compression":
        parts = _split(text, "compression", 1, 2)
        level = _number(parts[1], "compression level", int) if len(parts) > 1 else DEFAULT_COMPRESSION_LEVEL
        return cls(parts[0].lower(), level)


@dataclass(frozen=True)
class FrameRange:
    """Window ``start..end`` (end exclusive) with ``step`` over source frames."""

    start: int = 0
    end: Optional[int] = None
    step: int = 1

    def __post_init__(self):
        if self.step < 1:
            raise ParseOptionError(f"Frame step must be positive: {self.step}")

    @classmethod
    def parse(cls, text: str) -> "FrameRange":
        parts = _split(text, "frame range", 2, 3)
        start = _number(parts[0], "first frame", int)
        end = _number(parts[1], "last frame", int)
        step = _number(parts[2], "frame step", int) if len(parts) > 2 else 1
        return cls(start, end, step)

    def indices(self, total: int) -> list[int]:
        end = total if self.end is None else min(self.end, total)
        return [i for i in range(self.start, end, self.step) if 0 <= i < total]


@dataclass(frozen=True)
class VideoWindow:
    """Moving window of source frames per synthesized video frame."""

    window: int
    step: int = 1

    def __post_init__(self):
        if self.window < 1 or self.step < 1:
            raise ParseOptionError(f"Video window and step must be positive: {self.window}/{self.step}")

    @classmethod
    def parse(cls, text: str) -> "VideoWindow":
        parts = _split(text, "video", 1, 2)
        window = _number(parts[0], "video window", int)
        step = _number(parts[1], "video step", int) if len(parts) > 1 else 1
        return cls(window, step)

    def output_count(self, total: int) -> int:
        if total <= self.window:
            return 1
        return -(-(total - self.window) // self.step) + 1

    def frames(self, index: int, total: int) -> list[int]:
        start = index * self.step
        return list(range(start, min(start + self.window, total)))


@dataclass(frozen=True)
class Crop:
    """Crop rectangle applied to one frame before time-slicing."""

    x: int
    y: int
    width: int
    height: int

    def apply(self, frame: np.ndarray) -> np.ndarray:
        h, w = frame.shape[:2]
        if self.x < 0 or self.y < 0 or self.x + self.width > w or self.y + self.height > h:
            raise ValueError(f"Crop {self} exceeds frame of size {w}x{h}")
        return frame[self.y : self.y + self.height, self.x : self.x + self.width]
