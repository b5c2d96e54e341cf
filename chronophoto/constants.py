"""Defaults and format constants for chrono-photo."""

CHUNK_HEADER = ">I"  # big-endian u32 payload length
CHUNK_HEADER_SIZE = 4

COMPRESSION_GZIP = "gzip"
COMPRESSION_ZLIB = "zlib"
COMPRESSION_DEFLATE = "deflate"
DEFAULT_COMPRESSION_LEVEL = 6

TEMP_FILE_PREFIX = "temp"
TEMP_FILE_SUFFIX = ".bin"
TEMP_DIR_NAME = "chrono-photo"
RUN_ID_LENGTH = 12

DEFAULT_THRESHOLD = "abs/0.05/0.2"
DEFAULT_BACKGROUND = "random"
DEFAULT_OUTLIER = "extreme"
DEFAULT_WEIGHTS = (1.0, 1.0, 1.0, 1.0)
DEFAULT_SLICE = "rows/4"
DEFAULT_QUALITY = 95

MAX_CHANNELS = 4
COLOR_RANGE = 255.0

# fractional part of a quantile position closer than this to 0 or 1 snaps
QUANTILE_EPS = 0.001

# pixels handed to one composite worker at a time
PIXEL_BATCH = 4096
