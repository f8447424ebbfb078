import codecs
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
import csv
import io
import re
import sys
from typing import Any, BinaryIO

from csvdeflate._stream import CHUNK_SIZE

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

__all__ = ("CSVStream",)

_Row = list[str] | dict[str | None, Any]

# Largest value csv.field_size_limit() accepts on every platform (C long).
_MAX_FIELD_SIZE = 2**31 - 1

# One line and its "\r\n", "\r" or "\n" terminator.
_LINE = re.compile(r"[^\r\n]*(?:\r\n?|\n)")


def _decode_lines(
    stream: BinaryIO, encoding: str, errors: str
) -> Iterator[str]:
    # The csv module treats the end of each string as the end of a line, so
    # yield exactly one line per string, terminator included. A trailing "\r"
    # is held back until the next chunk tells whether "\n" follows.
    decoder = codecs.getincrementaldecoder(encoding)(errors)
    pending = ""
    final = False
    while not final:
        data = stream.read(CHUNK_SIZE)
        final = not data
        pending += decoder.decode(data, final)
        end = 0
        for match in _LINE.finditer(pending):
            if not final and match.end() == len(pending) and pending[-1] == "\r":
                break
            yield match.group()
            end = match.end()
        pending = pending[end:]
    if pending:
        yield pending


@contextmanager
def _field_size_limit(limit: int) -> Iterator[None]:
    # csv.field_size_limit() is process-wide, restore it after each read.
    old_limit = csv.field_size_limit(limit)
    try:
        yield
    finally:
        csv.field_size_limit(old_limit)


class _EncodingSink:
    # Text file object for csv.writer, encoding into a binary stream. The
    # incremental encoder writes the BOM of encodings such as UTF-16 whether
    # or not the binary stream is seekable, unlike io.TextIOWrapper.
    __slots__ = ("_encoder", "_stream")

    def __init__(self, stream: BinaryIO, encoding: str, errors: str) -> None:
        self._stream = stream
        self._encoder = codecs.getincrementalencoder(encoding)(errors)

    def write(self, text: str) -> int:
        data = self._encoder.encode(text)
        if data:
            self._stream.write(data)
        return len(text)

    def finish(self) -> None:
        data = self._encoder.encode("", True)
        if data:
            self._stream.write(data)


class CSVStream:
    """Rows of a compressed CSV file, read with or written by the csv module.

    Owns the binary stream it is given: closing a CSVStream closes the csv
    side first, then the binary stream. Usable as a context manager.

    Not thread-safe, an instance must be used by one thread at a time.
    """

    def __init__(
        self,
        stream: BinaryIO,
        mode: str = "r",
        *,
        encoding: str = "utf-8",
        errors: str = "strict",
        headers: bool | Sequence[str] | None = None,
        write_headers: bool = False,
        field_size_limit: int | None = None,
        **fmtparams: Any,
    ) -> None:
        """Wrap a binary stream opened in mode ("r" or "w").

        Parameters
        headers: In read mode, True takes the first row as the header row, a
            sequence of names is used as the header row. Rows are then dicts.
            In write mode, a sequence of names allows writing mapping rows.
        write_headers: In write mode, write the header row first.
        field_size_limit: In read mode, the largest field accepted, in
            characters. None means no limit, so any field written can be read
            back. The process-wide csv.field_size_limit() is left unchanged.
        fmtparams: Dialect and formatting parameters of the csv module, such
            as delimiter and quotechar.
        """
        self._stream = stream
        self._mode = mode
        self._sink: _EncodingSink | None = None
        self._closed = False
        if field_size_limit is None:
            field_size_limit = _MAX_FIELD_SIZE
        self._field_size_limit = field_size_limit
        try:
            if mode == "r":
                lines = _decode_lines(stream, encoding, errors)
                if headers is True:
                    self._reader = csv.DictReader(lines, **fmtparams)
                elif headers:
                    self._reader = csv.DictReader(lines, list(headers), **fmtparams)
                else:
                    self._reader = csv.reader(lines, **fmtparams)
                self._headers = None
            elif mode == "w":
                if headers is True:
                    raise ValueError(
                        "In write mode, headers argument should be "
                        "a sequence of column names."
                    )
                self._headers = list(headers) if headers else None
                if "dialect" not in fmtparams:
                    fmtparams.setdefault("lineterminator", "\n")
                self._sink = _EncodingSink(stream, encoding, errors)
                self._writer = csv.writer(self._sink, **fmtparams)
                if write_headers and self._headers is not None:
                    self._writer.writerow(self._headers)
            else:
                raise ValueError(f"Invalid mode: {mode!r}")
        except BaseException:
            self._closed = True
            stream.close()
            raise

    def _check_mode(self, expected_mode: str) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed file")
        if self._mode != expected_mode:
            if expected_mode == "r":
                raise io.UnsupportedOperation("File not open for reading")
            raise io.UnsupportedOperation("File not open for writing")

    @property
    def headers(self) -> list[str] | None:
        """The header row, None if headers are not used.

        In read mode with headers=True, this reads the first row.
        """
        if self._mode == "r":
            if isinstance(self._reader, csv.DictReader):
                with _field_size_limit(self._field_size_limit):
                    fieldnames = self._reader.fieldnames
                return None if fieldnames is None else list(fieldnames)
            return None
        return self._headers

    @property
    def line_num(self) -> int:
        """Number of lines read from the file, in read mode."""
        self._check_mode("r")
        return self._reader.line_num

    @property
    def stream(self) -> BinaryIO:
        """The underlying binary stream."""
        return self._stream

    def readrow(self) -> _Row | None:
        """Return the next row, or None at the end of the file."""
        self._check_mode("r")
        with _field_size_limit(self._field_size_limit):
            return next(self._reader, None)

    def __iter__(self) -> Self:
        self._check_mode("r")
        return self

    def __next__(self) -> _Row:
        row = self.readrow()
        if row is None:
            raise StopIteration
        return row

    def writerow(self, row: Iterable[Any] | Mapping[str, Any]) -> None:
        """Write a row, a sequence of values or a mapping keyed by headers.

        Values are converted with str(), None is written as an empty field.
        """
        self._check_mode("w")
        if isinstance(row, Mapping):
            row = self._mapping_to_row(row)
        self._writer.writerow(row)

    def writerows(self, rows: Iterable[Iterable[Any] | Mapping[str, Any]]) -> None:
        for row in rows:
            self.writerow(row)

    def _mapping_to_row(self, row: Mapping[str, Any]) -> list[Any]:
        if self._headers is None:
            raise ValueError("Writing a mapping row needs the headers argument.")
        extra = [key for key in row if key not in self._headers]
        if extra:
            raise ValueError(
                "row contains fields not in headers: "
                + ", ".join(repr(key) for key in extra)
            )
        return [row.get(key, "") for key in self._headers]

    def close(self) -> None:
        """Close the csv side, then the binary stream.

        May be called more than once without error.
        """
        if self._closed:
            return
        self._closed = True
        try:
            if self._sink is not None:
                self._sink.finish()
        finally:
            self._stream.close()

    @property
    def closed(self) -> bool:
        """True if this stream is closed."""
        return self._closed

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        name = getattr(self._stream, "name", None)
        state = "closed" if self._closed else ("read" if self._mode == "r" else "write")
        return f"<{type(self).__name__} {name!r} {state}>"
