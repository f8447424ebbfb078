from enum import IntEnum
import io
import logging
from os import PathLike
import sys
from typing import BinaryIO, ClassVar, Literal, Protocol

from csvdeflate._zstd import EOS, ZstdChunkDecompressor, _EndOfStream, zstd

if sys.version_info < (3, 12):
    from typing_extensions import Buffer
else:
    from collections.abc import Buffer

__all__ = (
    "CHUNK_SIZE",
    "BufferedChunkReader",
    "ChunkSource",
    "StreamState",
    "ZstdStreamReader",
    "ZstdStreamWriter",
)

logger = logging.getLogger(__name__)

# zstd's maximum block size. Any positive size gives the same results, this
# one avoids splitting a decompressed block over several calls.
CHUNK_SIZE = 128 * 1024

# Compact the accumulation buffer once this many consumed bytes sit at its
# front and they make up more than half of it.
_COMPACT_SIZE = 64 * 1024


class StreamState(IntEnum):
    """Lifecycle of a BufferedChunkReader."""

    OPEN = 0
    EXHAUSTED = 1  # the source reported EOS, buffered bytes may remain
    CLOSED = 2


class ChunkSource(Protocol):
    """Produces up to size bytes per read_chunk() call, or EOS once exhausted.

    A source may also have a close() method, BufferedChunkReader.close()
    calls it when present.
    """

    def read_chunk(self, size: int) -> bytes | _EndOfStream: ...


class _ByteAccumulator:
    # Bytes pulled from a chunk source but not yet returned to the caller,
    # consumed from the front and appended at the back.
    __slots__ = ("_buf", "_scan", "_scan_sep", "_start")

    def __init__(self) -> None:
        self._buf = bytearray()
        self._start = 0
        # Where the next search for _scan_sep resumes.
        self._scan = 0
        self._scan_sep = b""

    def __len__(self) -> int:
        return len(self._buf) - self._start

    def append(self, data: bytes) -> None:
        self._buf += data

    def find(self, sep: bytes) -> int:
        """Return the offset of sep from the front, or -1."""
        if sep != self._scan_sep:
            self._scan_sep = sep
            self._scan = self._start
        idx = self._buf.find(sep, max(self._start, self._scan))
        if idx < 0:
            # A later append may complete a separator starting in the tail.
            self._scan = max(self._start, len(self._buf) - len(sep) + 1)
            return -1
        return idx - self._start

    def take(self, size: int) -> bytes:
        end = self._start + min(size, len(self))
        data = bytes(self._buf[self._start : end])
        self._start = end
        if self._start == len(self._buf):
            self.clear()
        elif self._start > _COMPACT_SIZE and 2 * self._start > len(self._buf):
            del self._buf[: self._start]
            self._scan = max(0, self._scan - self._start)
            self._start = 0
        return data

    def take_all(self) -> bytes:
        return self.take(len(self))

    def clear(self) -> None:
        self._buf.clear()
        self._start = 0
        self._scan = 0


class BufferedChunkReader(io.BufferedIOBase):
    """A binary file object reading from a chunk source.

    The chunk source only knows how to produce "up to N more bytes" per call,
    and returns EOS when it is exhausted. This class adds line-delimited and
    length-delimited reads on top of it. Once EOS has been seen the source is
    never called again.

    Not thread-safe, an instance must be used by one thread at a time.
    """

    def __init__(self, source: ChunkSource, chunk_size: int = CHUNK_SIZE) -> None:
        self._state = StreamState.CLOSED
        if chunk_size < 1:
            raise ValueError("chunk_size argument should be a positive number.")
        self._source: ChunkSource | None = source
        self._chunk_size = chunk_size
        self._buffer = _ByteAccumulator()
        self._state = StreamState.OPEN

    def _fill(self) -> bool:
        """Append one chunk to the buffer, return False when the source is
        exhausted."""
        if self._state != StreamState.OPEN:
            return False
        chunk = self._source.read_chunk(self._chunk_size)  # type: ignore[union-attr]
        if chunk is EOS or not chunk:
            self._state = StreamState.EXHAUSTED
            logger.debug("%r: end of underlying stream", self)
            return False
        self._buffer.append(chunk)  # type: ignore[arg-type]
        return True

    def _check_not_closed(self) -> None:
        if self._state == StreamState.CLOSED:
            raise ValueError("I/O operation on closed file")

    def _readall(self) -> bytes:
        while self._fill():
            pass
        return self._buffer.take_all()

    def read(self, size: int | None = -1) -> bytes:
        """Read up to size bytes.

        If size is negative or omitted, read until the end of the stream.
        Fewer than size bytes are returned only at the end of the stream.
        Returns b"" if the stream is already at its end.
        """
        self._check_not_closed()
        if size is None or size < 0:
            return self._readall()
        while len(self._buffer) < size and self._fill():
            pass
        return self._buffer.take(size)

    def read1(self, size: int = -1) -> bytes:
        """Read up to size bytes, pulling at most one chunk from the source.

        Returns b"" if the stream is at its end.
        """
        self._check_not_closed()
        if not self._buffer:
            self._fill()
        if size < 0:
            return self._buffer.take_all()
        return self._buffer.take(size)

    def readline(  # type: ignore[override]
        self, size: int | None = -1, separator: bytes | None = b"\n"
    ) -> bytes:
        """Read up to and including the next separator.

        If the stream ends before a separator is found, the remaining bytes
        are returned as the last line. If size is non-negative, no more than
        size bytes are returned, and the rest of the line stays buffered for
        the next read. A separator of None reads the rest of the stream.
        Returns b"" if the stream is already at its end.
        """
        self._check_not_closed()
        if size is None:
            size = -1
        if separator is None:
            return self.read(size)
        if not separator:
            raise ValueError("separator argument should not be empty.")
        if size == 0:
            return b""

        while True:
            idx = self._buffer.find(separator)
            if idx >= 0:
                end = idx + len(separator)
                break
            if 0 <= size <= len(self._buffer):
                end = size
                break
            if not self._fill():
                end = len(self._buffer)
                break

        if size >= 0:
            end = min(end, size)
        return self._buffer.take(end)

    def close(self) -> None:
        """Close the stream and release the chunk source.

        May be called more than once without error. Once the stream is
        closed, any other operation on it will raise a ValueError.
        """
        if self._state == StreamState.CLOSED:
            return
        try:
            close = getattr(self._source, "close", None)
            if close is not None:
                close()
        finally:
            self._source = None
            self._buffer.clear()
            self._state = StreamState.CLOSED

    @property
    def closed(self) -> bool:
        """True if this stream is closed."""
        return self._state == StreamState.CLOSED

    @property
    def state(self) -> StreamState:
        return self._state

    def readable(self) -> bool:
        self._check_not_closed()
        return True

    def writable(self) -> bool:
        self._check_not_closed()
        return False

    def seekable(self) -> bool:
        self._check_not_closed()
        return False


def _open_file(
    filename: str | bytes | PathLike | BinaryIO, mode: str, attr: str
) -> tuple[BinaryIO, bool]:
    if isinstance(filename, (str, bytes, PathLike)):
        return io.open(filename, mode), True  # noqa: SIM115
    if hasattr(filename, attr):
        return filename, False  # type: ignore[return-value]
    raise TypeError("filename must be a str, bytes, file or PathLike object")


class ZstdStreamReader(BufferedChunkReader):
    """A binary file object decompressing a zstd file.

    filename can be either an actual file name (given as a str, bytes, or
    PathLike object), in which case the named file is opened and closed with
    the reader, or an existing file object to read from, which is left open.
    """

    def __init__(
        self,
        filename: str | bytes | PathLike | BinaryIO,
        *,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        # For .close() called by IOBase's finalizer if opening fails.
        self._state = StreamState.CLOSED
        fp, closefp = _open_file(filename, "rb", "read")
        try:
            super().__init__(ZstdChunkDecompressor(fp, closefp=closefp), chunk_size)
        except BaseException:
            if closefp:
                fp.close()
            raise


class ZstdStreamWriter(io.BufferedIOBase):
    """A binary file object compressing to a zstd file.

    filename is handled as in ZstdStreamReader. The file content is complete
    once .close() has finished the zstd frame.

    Not thread-safe, an instance must be used by one thread at a time.
    """

    FLUSH_BLOCK: ClassVar[Literal[1]] = zstd.ZstdCompressor.FLUSH_BLOCK
    FLUSH_FRAME: ClassVar[Literal[2]] = zstd.ZstdCompressor.FLUSH_FRAME

    def __init__(
        self,
        filename: str | bytes | PathLike | BinaryIO,
        *,
        level: int | None = None,
    ) -> None:
        """Open a zstd file for writing.

        Parameters
        level: Compression level, None means zstd's default level.
        """
        self._fp: BinaryIO | None = None
        self._closefp = False
        self._closed = True

        if level is not None and not isinstance(level, int):
            raise TypeError("level argument should be an int object.")
        self._compressor = zstd.ZstdCompressor(level=level)
        self._level = level

        self._fp, self._closefp = _open_file(filename, "wb", "write")
        self._closed = False
        self._pos = 0

    @property
    def level(self) -> int | None:
        """The compression level given at construction."""
        return self._level

    def _check_not_closed(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed file")

    def write(self, data: Buffer) -> int:
        """Write a bytes-like object, return the number of uncompressed bytes
        written.

        The file may not reflect the data written until .close() is called.
        """
        self._check_not_closed()
        if isinstance(data, (bytes, bytearray)):
            length = len(data)
        else:
            data = memoryview(data)
            length = data.nbytes

        # b'' until enough data is gathered for one zstd block.
        compressed = self._compressor.compress(data)
        if compressed:
            self._fp.write(compressed)  # type: ignore[union-attr]

        self._pos += length
        return length

    def flush(self, mode: Literal[1, 2] = FLUSH_BLOCK) -> None:
        """Flush buffered data to the underlying file.

        The mode argument can be ZstdStreamWriter.FLUSH_BLOCK or
        ZstdStreamWriter.FLUSH_FRAME.
        """
        self._check_not_closed()

        # Nothing written since the last flush of this kind, or since the
        # last frame ended.
        last_mode = self._compressor.last_mode
        if last_mode == mode or last_mode == self.FLUSH_FRAME:
            return

        compressed = self._compressor.flush(mode)
        if compressed:
            self._fp.write(compressed)  # type: ignore[union-attr]
        if hasattr(self._fp, "flush"):
            self._fp.flush()  # type: ignore[union-attr]

    def close(self) -> None:
        """Finish the zstd frame and close the file.

        May be called more than once without error. Once the file is
        closed, any other operation on it will raise a ValueError.
        """
        if self._closed:
            return
        try:
            self.flush(self.FLUSH_FRAME)
            logger.debug("%r: finished zstd frame, %d bytes in", self, self._pos)
        finally:
            try:
                if self._closefp:
                    self._fp.close()  # type: ignore[union-attr]
            finally:
                self._fp = None
                self._closefp = False
                self._closed = True

    @property
    def closed(self) -> bool:
        """True if this file is closed."""
        return self._closed

    def tell(self) -> int:
        """Return the number of uncompressed bytes written so far."""
        self._check_not_closed()
        return self._pos

    def readable(self) -> bool:
        self._check_not_closed()
        return False

    def writable(self) -> bool:
        self._check_not_closed()
        return True

    def seekable(self) -> bool:
        self._check_not_closed()
        return False
