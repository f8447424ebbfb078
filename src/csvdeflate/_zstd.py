import sys
from typing import BinaryIO

if sys.version_info < (3, 14):
    from backports import zstd
else:
    from compression import zstd

__all__ = ("EOS", "ZstdChunkDecompressor", "ZstdError", "zstd")

ZstdError = zstd.ZstdError

# ZSTD_DStreamInSize() in zstd v1.x, the recommended input size for one
# decompression step.
_ZSTD_DStreamInSize = 131_075


class _EndOfStream:
    def __repr__(self) -> str:
        return "<EOS>"


EOS = _EndOfStream()
"""Returned by a chunk source once it will never produce more data."""


class ZstdChunkDecompressor:
    """Decompress a zstd file chunk by chunk, accepts multiple concatenated
    frames.

    .read_chunk() returns EOS at the end of the input, it never raises for
    that. A frame cut short by the end of the input raises EOFError, corrupted
    data raises ZstdError.
    """

    def __init__(
        self,
        fp: BinaryIO,
        *,
        closefp: bool = False,
        read_size: int = _ZSTD_DStreamInSize,
    ) -> None:
        if read_size < 1:
            raise ValueError("read_size argument should be a positive number.")
        self._fp = fp
        self._closefp = closefp
        self._read_size = read_size
        self._reset()

    def _reset(self, data: bytes = b"") -> None:
        self._decompressor = zstd.ZstdDecompressor()
        self._unused = data
        self._at_frame_edge = not data

    @property
    def at_frame_edge(self) -> bool:
        """True when no frame is partially decoded."""
        return self._at_frame_edge

    def read_chunk(self, size: int) -> bytes | _EndOfStream:
        """Return up to size decompressed bytes, or EOS when the input is
        exhausted at a frame edge."""
        if size < 1:
            raise ValueError("size argument should be a positive number.")

        # The decompressor may not output anything for a given input block
        # (frame header, skippable frame), keep feeding it until it does.
        while True:
            if self._unused:
                rawblock, self._unused = self._unused, b""
            elif self._decompressor.needs_input:
                rawblock = self._fp.read(self._read_size)
                if not rawblock:
                    if self._at_frame_edge:
                        return EOS
                    raise EOFError(
                        "Compressed file ended before the "
                        "end-of-stream marker was reached"
                    )
            else:
                rawblock = b""
            if rawblock:
                self._at_frame_edge = False

            data = self._decompressor.decompress(rawblock, size)
            if self._decompressor.eof:
                self._reset(self._decompressor.unused_data)
            if data:
                return data

    def close(self) -> None:
        try:
            if self._closefp:
                self._fp.close()
        finally:
            self._closefp = False
