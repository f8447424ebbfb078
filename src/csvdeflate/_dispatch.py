from enum import Enum
import gzip
import logging
import os
from os import PathLike
from typing import BinaryIO, NamedTuple
import zlib

from csvdeflate._stream import ZstdStreamReader, ZstdStreamWriter
from csvdeflate._zstd import zstd

__all__ = (
    "Codec",
    "DeflateError",
    "StreamOptions",
    "UnsupportedExtensionError",
    "UnsupportedModeError",
    "open_stream",
)

logger = logging.getLogger(__name__)

_StrOrBytesPath = str | bytes | PathLike[str] | PathLike[bytes]

_READ_MODES = ("r", "read")
_WRITE_MODES = ("w", "write")


class DeflateError(Exception):
    "A compressed CSV file can't be opened with the given arguments."


class UnsupportedExtensionError(DeflateError):
    "The file extension doesn't select a known codec."


class UnsupportedModeError(DeflateError):
    "The mode is neither read nor write."


class Codec(Enum):
    """Compression codecs, selected by file extension."""

    GZIP = ".gz"
    ZSTD = ".zst"

    @classmethod
    def from_path(cls, path: _StrOrBytesPath) -> "Codec":
        """Return the codec for the last extension of path."""
        ext = os.path.splitext(os.fsdecode(path))[1]
        try:
            return cls(ext)
        except ValueError:
            msg = f"unsupported file extension: {ext!r} (expected .gz or .zst)"
            raise UnsupportedExtensionError(msg) from None

    @property
    def default_level(self) -> int:
        if self is Codec.GZIP:
            return zlib.Z_DEFAULT_COMPRESSION
        return zstd.COMPRESSION_LEVEL_DEFAULT

    def level_bounds(self) -> tuple[int, int]:
        """Return lower and upper bounds of the compression level, both
        inclusive."""
        if self is Codec.GZIP:
            return zlib.Z_DEFAULT_COMPRESSION, zlib.Z_BEST_COMPRESSION
        return zstd.CompressionParameter.compression_level.bounds()


class StreamOptions(NamedTuple):
    codec: Codec
    mode: str  # "r" or "w"
    level: int | None

    @classmethod
    def resolve(
        cls, path: _StrOrBytesPath, mode: str = "w", level: int | None = None
    ) -> "StreamOptions":
        """Validate the arguments of open_stream() without opening anything."""
        codec = Codec.from_path(path)

        if mode in _READ_MODES:
            mode = "r"
        elif mode in _WRITE_MODES:
            mode = "w"
        else:
            raise UnsupportedModeError(f"unsupported mode: {mode!r} (expected r or w)")

        if level is not None:
            if not isinstance(level, int) or isinstance(level, bool):
                raise TypeError("level argument should be an int object.")
            if mode == "r":
                # The same options can be given for reading and writing.
                logger.debug("level %d ignored in read mode", level)
                return cls(codec, mode, None)
            low, high = codec.level_bounds()
            if not (low <= level <= high):
                msg = (
                    f"{codec.name.lower()} compression level should: "
                    f"{low} <= v <= {high}. provided value is {level}."
                )
                raise ValueError(msg)
        return cls(codec, mode, level)

    def open(self, path: _StrOrBytesPath) -> BinaryIO:
        stream = _OPENERS[self.codec, self.mode](path, self.level)
        logger.debug(
            "opened %s for %s with %s codec",
            os.fsdecode(path),
            "reading" if self.mode == "r" else "writing",
            self.codec.name.lower(),
        )
        return stream


def _gzip_reader(path: _StrOrBytesPath, level: int | None) -> BinaryIO:  # noqa: ARG001
    return gzip.GzipFile(path, "rb")


def _gzip_writer(path: _StrOrBytesPath, level: int | None) -> BinaryIO:
    if level is None:
        level = Codec.GZIP.default_level
    return gzip.GzipFile(path, "wb", compresslevel=level)


def _zstd_reader(path: _StrOrBytesPath, level: int | None) -> BinaryIO:  # noqa: ARG001
    return ZstdStreamReader(path)


def _zstd_writer(path: _StrOrBytesPath, level: int | None) -> BinaryIO:
    return ZstdStreamWriter(path, level=level)


_OPENERS = {
    (Codec.GZIP, "r"): _gzip_reader,
    (Codec.GZIP, "w"): _gzip_writer,
    (Codec.ZSTD, "r"): _zstd_reader,
    (Codec.ZSTD, "w"): _zstd_writer,
}


def open_stream(
    path: _StrOrBytesPath, mode: str = "w", *, level: int | None = None
) -> BinaryIO:
    """Open a compressed file as a binary file object.

    The codec is selected by the last extension of path: ".gz" for gzip,
    ".zst" for zstd. mode can be "r" / "read" or "w" / "write" (default).
    level is the compression level in write mode, None means the codec's
    default level. It is ignored in read mode.

    Raises UnsupportedExtensionError or UnsupportedModeError before opening
    anything.
    """
    return StreamOptions.resolve(path, mode, level).open(path)
