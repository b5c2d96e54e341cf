"""Band file format helpers.

A band file is a plain sequence of chunks, one per frame, in frame order::

    [u32 big-endian length][compressed payload]
    [u32 big-endian length][compressed payload]
    ...

The payload is a gzip, zlib or raw deflate stream, fixed for a run. A
truncated trailing chunk is read as end-of-stream.
"""

from __future__ import annotations

import gzip
import logging
import struct
import zlib
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

from .constants import (
    CHUNK_HEADER,
    CHUNK_HEADER_SIZE,
    COMPRESSION_DEFLATE,
    COMPRESSION_GZIP,
    COMPRESSION_ZLIB,
)
from .errors import ChunkLengthMismatchError
from .options import Compression

logger = logging.getLogger(__name__)


def compress_chunk(buf: bytes, compression: Compression) -> bytes:
    if compression.scheme == COMPRESSION_GZIP:
        return gzip.compress(buf, compresslevel=compression.level, mtime=0)
    if compression.scheme == COMPRESSION_ZLIB:
        return zlib.compress(buf, compression.level)
    if compression.scheme == COMPRESSION_DEFLATE:
        comp = zlib.compressobj(compression.level, zlib.DEFLATED, -zlib.MAX_WBITS)
        return comp.compress(buf) + comp.flush()
    raise ValueError(f"Unknown compression {compression.scheme}")


def decompress_chunk(buf: bytes, compression: Compression) -> bytes:
    if compression.scheme == COMPRESSION_GZIP:
        return gzip.decompress(buf)
    if compression.scheme == COMPRESSION_ZLIB:
        return zlib.decompress(buf)
    if compression.scheme == COMPRESSION_DEFLATE:
        return zlib.decompress(buf, -zlib.MAX_WBITS)
    raise ValueError(f"Unknown compression {compression.scheme}")


def pack_chunk(buf: bytes, compression: Compression) -> bytes:
    payload = compress_chunk(buf, compression)
    return struct.pack(CHUNK_HEADER, len(payload)) + payload


class BandWriter:
    """Appends chunks to one band file.

    The file is created (truncated) on the first chunk and stays open until
    :meth:`close`; chunks written so far are only guaranteed on disk after
    closing.
    """

    def __init__(self, path: Path | str, compression: Compression):
        self.path = Path(path)
        self.compression = compression
        self.chunks = 0
        self._f = None

    def __enter__(self) -> "BandWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._f is None

    def close(self) -> None:
        if self._f is not None:
            self._f.close()
            self._f = None

    def write_chunk(self, buf: bytes | memoryview | np.ndarray) -> int:
        """Compress and append ``buf``; returns the compressed size."""
        if isinstance(buf, np.ndarray):
            buf = buf.tobytes()
        record = pack_chunk(bytes(buf), self.compression)
        if self._f is None:
            self._f = open(self.path, "ab" if self.chunks > 0 else "wb")
        self._f.write(record)
        self.chunks += 1
        return len(record) - CHUNK_HEADER_SIZE


class BandReader:
    """Sequential reader over the chunks of one band file."""

    def __init__(self, path: Path | str, compression: Compression):
        self.path = Path(path)
        self.compression = compression
        self._f = open(self.path, "rb")
        self._size = self.path.stat().st_size

    def __enter__(self) -> "BandReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._f.close()

    def _read_length(self) -> Optional[int]:
        raw = self._f.read(CHUNK_HEADER_SIZE)
        if len(raw) != CHUNK_HEADER_SIZE:
            return None
        return struct.unpack(CHUNK_HEADER, raw)[0]

    def read_chunk(self) -> Optional[bytes]:
        """Return the next decompressed chunk, or None at end of stream."""
        length = self._read_length()
        if length is None:
            return None
        payload = self._f.read(length)
        if len(payload) != length:
            logger.debug("Truncated chunk in %s treated as end of stream", self.path)
            return None
        return decompress_chunk(payload, self.compression)

    def skip_chunk(self) -> bool:
        """Seek past the next chunk without decompressing it."""
        length = self._read_length()
        if length is None:
            return False
        pos = self._f.tell()
        if pos + length > self._size:
            return False
        self._f.seek(pos + length)
        return True

    def iter_chunks(self, indices: Iterable[int] | None = None):
        """Yield ``(index, bytes)`` for all chunks or an ascending subset."""
        if indices is None:
            i = 0
            while True:
                chunk = self.read_chunk()
                if chunk is None:
                    return
                yield i, chunk
                i += 1
        pos = 0
        for wanted in indices:
            if wanted < pos:
                raise ValueError(f"Frame indices must be ascending, got {wanted} after {pos - 1}")
            while pos < wanted:
                if not self.skip_chunk():
                    return
                pos += 1
            chunk = self.read_chunk()
            if chunk is None:
                return
            yield pos, chunk
            pos += 1

    def read_frames(self, indices: Iterable[int] | None = None) -> np.ndarray:
        """Read chunks into a ``(frames, band_bytes)`` uint8 matrix."""
        rows = []
        expected = None
        for i, chunk in self.iter_chunks(indices):
            if expected is None:
                expected = len(chunk)
            elif len(chunk) != expected:
                raise ChunkLengthMismatchError(self.path, expected, len(chunk), i)
            rows.append(np.frombuffer(chunk, dtype=np.uint8))
        if not rows:
            return np.zeros((0, 0), dtype=np.uint8)
        return np.stack(rows, axis=0)


def read_band(path: Path | str, compression: Compression, indices=None) -> np.ndarray:
    with BandReader(path, compression) as reader:
        return reader.read_frames(indices)
