from collections.abc import Callable, Iterator, Sequence
from typing import Any, overload

from csvdeflate._dispatch import (
    Codec,
    DeflateError,
    StreamOptions,
    UnsupportedExtensionError,
    UnsupportedModeError,
    _StrOrBytesPath,
    open_stream,
)
from csvdeflate._rows import CSVStream
from csvdeflate._stream import (
    CHUNK_SIZE,
    BufferedChunkReader,
    ChunkSource,
    StreamState,
    ZstdStreamReader,
    ZstdStreamWriter,
)
from csvdeflate._version import __version__  # noqa: F401
from csvdeflate._zstd import EOS, ZstdChunkDecompressor, ZstdError

__doc__ = """\
Read and write CSV/TSV files compressed with gzip or zstd, the codec is
selected by the file extension (.gz or .zst).

    with csvdeflate.open("people.csv.zst", "w", headers=["name", "age"],
                         write_headers=True) as rows:
        rows.writerow(["Alice", 30])

    for row in csvdeflate.foreach("people.csv.zst", headers=True):
        print(row["name"])

Command line interface of this module: python -m csvdeflate --help"""

__all__ = (
    "CHUNK_SIZE",
    "EOS",
    "BufferedChunkReader",
    "CSVStream",
    "ChunkSource",
    "Codec",
    "DeflateError",
    "StreamOptions",
    "StreamState",
    "UnsupportedExtensionError",
    "UnsupportedModeError",
    "ZstdChunkDecompressor",
    "ZstdError",
    "ZstdStreamReader",
    "ZstdStreamWriter",
    "foreach",
    "open",
    "open_stream",
)


def open(  # noqa: A001
    path: _StrOrBytesPath,
    mode: str = "w",
    *,
    level: int | None = None,
    encoding: str = "utf-8",
    errors: str = "strict",
    headers: bool | Sequence[str] | None = None,
    write_headers: bool = False,
    **fmtparams: Any,
) -> CSVStream:
    """Open a gzip or zstd compressed CSV file, return a CSVStream.

    The codec is selected by the last extension of path, ".gz" or ".zst".
    mode can be "r" / "read" or "w" / "write" (default). level is the
    compression level in write mode, None means the codec's default level.
    It is ignored in read mode.

    The encoding, errors, headers, write_headers, field_size_limit and
    fmtparams parameters are given to CSVStream, fmtparams are the csv
    module's dialect and formatting parameters (delimiter, quotechar, ...).

    Use it as a context manager so the file is closed on every exit path:

        with csvdeflate.open(path, "r", headers=True) as rows:
            for row in rows:
                ...

    Otherwise the caller must call .close() on the returned CSVStream, which
    also closes the compressed file.
    """
    options = StreamOptions.resolve(path, mode, level)
    return CSVStream(
        options.open(path),
        options.mode,
        encoding=encoding,
        errors=errors,
        headers=headers,
        write_headers=write_headers,
        **fmtparams,
    )


def _iter_rows(path: _StrOrBytesPath, csv_options: dict[str, Any]) -> Iterator[Any]:
    with open(path, "r", **csv_options) as rows:
        yield from rows


@overload
def foreach(
    path: _StrOrBytesPath, callback: None = None, **csv_options: Any
) -> Iterator[Any]: ...


@overload
def foreach(
    path: _StrOrBytesPath, callback: Callable[[Any], object], **csv_options: Any
) -> None: ...


def foreach(
    path: _StrOrBytesPath,
    callback: Callable[[Any], object] | None = None,
    **csv_options: Any,
) -> Iterator[Any] | None:
    """Read every row of a compressed CSV file.

    With a callback, call it with each row and return None. Without one,
    return a generator of rows, the file is opened when the generator starts
    and closed when it is exhausted or closed. Each call returns a new
    generator.

    csv_options are the keyword arguments of open(), except mode.
    """
    # Raise argument errors now, not when the generator starts.
    StreamOptions.resolve(path, "r", csv_options.get("level"))
    if callback is None:
        return _iter_rows(path, csv_options)
    with open(path, "r", **csv_options) as rows:
        for row in rows:
            callback(row)
    return None
