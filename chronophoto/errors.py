"""Exception hierarchy for chrono-photo."""
from __future__ import annotations


class ChronoError(Exception):
    """Base class for all errors raised by chrono-photo."""


class LayoutMismatchError(ChronoError):
    """A frame's raster layout differs from the first frame of the run."""

    def __init__(self, expected, actual, index: int | None = None):
        where = f" (frame {index})" if index is not None else ""
        super().__init__(f"Image layout does not fit{where}: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
        self.index = index


class ChunkLengthMismatchError(ChronoError):
    """Chunks within one band file decompress to different lengths."""

    def __init__(self, path, expected: int, actual: int, chunk: int):
        super().__init__(
            f"Chunk {chunk} in {path} has {actual} bytes, expected {expected}"
        )
        self.path = path
        self.expected = expected
        self.actual = actual
        self.chunk = chunk


class FrameFormatError(ChronoError, ValueError):
    """Input frame is not an 8-bit raster."""


class ParseOptionError(ChronoError, ValueError):
    """An option string could not be parsed."""


class EncodingError(ChronoError):
    """The image encoder failed to write an output file."""
