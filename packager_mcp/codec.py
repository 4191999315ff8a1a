from __future__ import annotations

import os
import zlib
from enum import Enum
from typing import Dict, Optional, Union

import brotli

from .constants import (
    COPY_BUFSIZE,
    DEFAULT_BROTLI_QUALITY,
    DEFAULT_ZLIB_LEVEL,
    EXTENSION_ALGORITHMS,
    MAX_LEVEL,
    MIN_LEVEL,
)
from .errors import CompressionError, UnsupportedAlgorithm


class CompressionAlgorithm(str, Enum):
    GZIP = "gzip"
    BROTLI = "brotli"
    DEFLATE = "deflate"


_GZIP_WBITS = 16 + zlib.MAX_WBITS
_ZLIB_WBITS = zlib.MAX_WBITS


def get_compression_algorithm(name: Union[str, CompressionAlgorithm]) -> CompressionAlgorithm:
    if isinstance(name, CompressionAlgorithm):
        return name
    try:
        return CompressionAlgorithm(str(name).strip().lower())
    except ValueError:
        raise UnsupportedAlgorithm(f"Unsupported compression algorithm: {name}") from None


def detect_algorithm(path: str) -> CompressionAlgorithm:
    """Guess the algorithm of a compressed file.

    Content magic wins (gzip, zlib header); brotli has no magic so it is only
    recognized by extension.
    """
    with open(path, "rb") as f:
        head = f.read(2)
    if head[:2] == b"\x1f\x8b":
        return CompressionAlgorithm.GZIP
    if len(head) == 2 and (head[0] & 0x0F) == 8 and ((head[0] << 8) | head[1]) % 31 == 0:
        return CompressionAlgorithm.DEFLATE
    ext = os.path.splitext(path)[1].lower()
    if ext in EXTENSION_ALGORITHMS:
        return CompressionAlgorithm(EXTENSION_ALGORITHMS[ext])
    raise UnsupportedAlgorithm(f"Unable to detect compression algorithm for {path}; specify one explicitly")


class Codec:
    def __init__(self, algorithm: Union[str, CompressionAlgorithm], level: Optional[int] = None):
        self.algorithm = get_compression_algorithm(algorithm)
        if level is not None and not (MIN_LEVEL <= level <= MAX_LEVEL):
            raise ValueError(f"Compression level must be between {MIN_LEVEL} and {MAX_LEVEL}")
        self.level = level

    def compressor(self):
        """Return an object with ``process(data)`` and ``finish()``."""
        if self.algorithm is CompressionAlgorithm.BROTLI:
            quality = self.level if self.level is not None else DEFAULT_BROTLI_QUALITY
            return _BrotliCompressor(quality)
        wbits = _GZIP_WBITS if self.algorithm is CompressionAlgorithm.GZIP else _ZLIB_WBITS
        level = self.level if self.level is not None else DEFAULT_ZLIB_LEVEL
        return _ZlibCompressor(zlib.compressobj(level, zlib.DEFLATED, wbits))

    def decompressor(self):
        """Return an object with ``process(data)`` and ``finish()``."""
        if self.algorithm is CompressionAlgorithm.BROTLI:
            return _BrotliDecompressor()
        wbits = _GZIP_WBITS if self.algorithm is CompressionAlgorithm.GZIP else _ZLIB_WBITS
        return _ZlibDecompressor(zlib.decompressobj(wbits))


class _ZlibCompressor:
    def __init__(self, obj):
        self._obj = obj

    def process(self, data: bytes) -> bytes:
        return self._obj.compress(data)

    def finish(self) -> bytes:
        return self._obj.flush()


class _ZlibDecompressor:
    def __init__(self, obj):
        self._obj = obj

    def process(self, data: bytes) -> bytes:
        try:
            return self._obj.decompress(data)
        except zlib.error as exc:
            raise CompressionError(f"Corrupt compressed data: {exc}") from exc

    def finish(self) -> bytes:
        tail = self._obj.flush()
        if not self._obj.eof:
            raise CompressionError("Truncated compressed stream")
        return tail


class _BrotliCompressor:
    def __init__(self, quality: int):
        self._obj = brotli.Compressor(quality=quality)

    def process(self, data: bytes) -> bytes:
        return self._obj.process(data)

    def finish(self) -> bytes:
        return self._obj.finish()


class _BrotliDecompressor:
    def __init__(self):
        self._obj = brotli.Decompressor()

    def process(self, data: bytes) -> bytes:
        try:
            return self._obj.process(data)
        except brotli.error as exc:
            raise CompressionError(f"Corrupt compressed data: {exc}") from exc

    def finish(self) -> bytes:
        if not self._obj.is_finished():
            raise CompressionError("Truncated compressed stream")
        return b""


def _check_distinct(src: str, dst: str) -> None:
    same = os.path.abspath(src) == os.path.abspath(dst)
    if not same and os.path.exists(src) and os.path.exists(dst):
        same = os.path.samefile(src, dst)
    if same:
        raise ValueError(f"Source and output are the same file: {src}")


def _stream(src: str, dst: str, engine) -> int:
    _check_distinct(src, dst)
    written = 0
    with open(src, "rb") as rf:
        parent = os.path.dirname(dst)
        if parent:
            os.makedirs(parent, exist_ok=True)
        wf = open(dst, "wb")
        try:
            with wf:
                while True:
                    buf = rf.read(COPY_BUFSIZE)
                    if not buf:
                        break
                    out = engine.process(buf)
                    if out:
                        wf.write(out)
                        written += len(out)
                tail = engine.finish()
                if tail:
                    wf.write(tail)
                    written += len(tail)
        except BaseException:
            # Only the file opened above is ours to remove
            if os.path.isfile(dst):
                os.remove(dst)
            raise
    return written


def compress_file(source: str, output: str, options: Optional[Dict] = None) -> int:
    """Compress one file.

    Args:
        source: File to compress.
        output: Destination path (parents are created).
        options: ``algorithm`` (name or CompressionAlgorithm, default gzip) and
            optional ``level`` (1-9).

    Returns:
        Size in bytes of the written output.
    """
    options = options or {}
    codec = Codec(options.get("algorithm", CompressionAlgorithm.GZIP), options.get("level"))
    if os.path.isdir(source):
        raise IsADirectoryError(f"Source is a directory: {source}")
    return _stream(source, output, codec.compressor())


def decompress_file(
    source: str,
    output: str,
    algorithm: Optional[Union[str, CompressionAlgorithm]] = None,
) -> int:
    """Decompress one file; the algorithm is detected when not given."""
    if algorithm is None:
        algorithm = detect_algorithm(source)
    codec = Codec(algorithm)
    return _stream(source, output, codec.decompressor())
