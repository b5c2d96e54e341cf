"""chrono-photo: outlier compositing of time-ordered photographs."""
from .chrono import ChronoProcessor, CompositeResult, PixelScratch
from .errors import (
    ChronoError,
    ChunkLengthMismatchError,
    EncodingError,
    FrameFormatError,
    LayoutMismatchError,
    ParseOptionError,
)
from .format import BandReader, BandWriter, read_band
from .options import (
    BackgroundMode,
    Compression,
    Crop,
    Fade,
    FadeMode,
    FrameRange,
    OutlierSelectionMode,
    SliceLength,
    Threshold,
    VideoWindow,
    Weights,
)
from .pipeline import run_chrono
from .slicer import RasterLayout, SliceResult, TimeSlicer, write_time_slices
from .version import __version__, get_build_meta, get_version_string

__all__ = [
    "BackgroundMode",
    "BandReader",
    "BandWriter",
    "ChronoError",
    "ChronoProcessor",
    "ChunkLengthMismatchError",
    "CompositeResult",
    "Compression",
    "Crop",
    "EncodingError",
    "Fade",
    "FadeMode",
    "FrameFormatError",
    "FrameRange",
    "LayoutMismatchError",
    "OutlierSelectionMode",
    "ParseOptionError",
    "PixelScratch",
    "RasterLayout",
    "SliceLength",
    "SliceResult",
    "Threshold",
    "TimeSlicer",
    "VideoWindow",
    "Weights",
    "get_build_meta",
    "get_version_string",
    "read_band",
    "run_chrono",
    "write_time_slices",
    "__version__",
]
