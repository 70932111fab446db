"""Delimited text helpers: delimiter codes, column projection and previews.

``ColumnProjection`` re-shapes an input stream row by row so a caller can
insert a subset of a file's columns without materialising the file. Previews
use pandas to read only the first rows of a file.

The csv module keeps one field size limit per process. ``ColumnProjection``
raises it to ``max_field_size`` when that is larger and never lowers it, so
the effective limit is the largest value requested so far.
"""

import csv
import io
from typing import BinaryIO, Iterator, List, Optional, Sequence

import pandas as pd

from flatfile_bridge.exceptions import ConfigurationError
from flatfile_bridge.infrastructure.models.transfer import DelimitedPreview
from flatfile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

DELIMITER_ESCAPES = {
    "\\n": "\n",
    "\\t": "\t",
    "\\r": "\r",
    "\\b": "\b",
    "\\f": "\f",
    "\\'": "'",
    '\\"': '"',
    "\\\\": "\\",
}

NO_DATA_PLACEHOLDER = "(No data)"


def decode_delimiter(code: Optional[str]) -> str:
    """
    Turn a textual delimiter code into the delimiter character.

    The codes \\n \\t \\r \\b \\f \\' \\" and \\\\ map to the characters they
    name; any other code contributes its first character.

    Examples:
        >>> decode_delimiter("|")
        '|'
        >>> decode_delimiter("::")
        ':'

    Raises:
        ConfigurationError: If the code is None or empty
    """
    if not code:
        raise ConfigurationError("delimiter", "Delimiter must not be empty")
    return DELIMITER_ESCAPES.get(code, code[0])


def raise_field_size_limit(limit: int) -> int:
    """Raise the process-wide csv field size limit to at least ``limit``."""
    current = csv.field_size_limit()
    if limit > current:
        csv.field_size_limit(limit)
        return limit
    return current


class ColumnProjection:
    """Iterable of CSVWithNames byte chunks holding only selected columns.

    The source header row is read on construction so that missing columns
    fail before anything is sent to the store. Output is comma-delimited,
    header first, columns in the requested order. Short rows are padded with
    empty fields and blank lines are dropped. Output is always UTF-8. The
    source stream is not closed.
    """

    def __init__(
        self,
        source: BinaryIO,
        columns: Sequence[str],
        delimiter: str,
        chunk_size: int = 131072,
        max_field_size: Optional[int] = None,
        encoding: str = "utf-8-sig",
    ):
        if max_field_size:
            raise_field_size_limit(max_field_size)

        self.columns = list(columns)
        self.chunk_size = chunk_size
        self.rows_processed = 0
        self.bytes_produced = 0

        self._text = io.TextIOWrapper(source, encoding=encoding, newline="")
        self._reader = csv.reader(self._text, delimiter=delimiter)

        header = next(self._reader, None)
        if not header:
            self._release()
            raise ConfigurationError("source", "Input stream has no header row")

        positions = {}
        for position, name in enumerate(header):
            positions.setdefault(name.strip(), position)

        missing = [c for c in self.columns if c not in positions]
        if missing:
            self._release()
            raise ConfigurationError(
                "headers", f"Columns not found in input header: {', '.join(missing)}"
            )
        self._indices = [positions[c] for c in self.columns]

    def _release(self) -> None:
        # Detach so garbage collection of the wrapper leaves the source open
        if self._text is not None:
            self._text.detach()
            self._text = None

    def close(self) -> None:
        """Detach from the source without closing it. Safe to call twice."""
        self._release()

    def _project(self, row: List[str]) -> List[str]:
        return [row[i] if i < len(row) else "" for i in self._indices]

    def __iter__(self) -> Iterator[bytes]:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(self.columns)
        try:
            for row in self._reader:
                if not row:
                    continue
                writer.writerow(self._project(row))
                self.rows_processed += 1
                if buffer.tell() >= self.chunk_size:
                    yield self._drain(buffer)
            if buffer.tell():
                yield self._drain(buffer)
        finally:
            self._release()
            logger.debug(
                "ingestion.projection.finished",
                rows=self.rows_processed,
                bytes=self.bytes_produced,
            )

    def _drain(self, buffer: io.StringIO) -> bytes:
        chunk = buffer.getvalue().encode("utf-8")
        buffer.seek(0)
        buffer.truncate()
        self.bytes_produced += len(chunk)
        return chunk


def preview_delimited(
    source: BinaryIO,
    delimiter: str = ",",
    has_header: bool = True,
    max_rows: int = 100,
) -> DelimitedPreview:
    """
    Read the first rows of a delimited file for display.

    With a header, a header-only file yields one placeholder row. Without a
    header, columns are named Column1..N. Parse failures are reported in the
    preview's ``error`` field rather than raised.
    """
    try:
        frame = pd.read_csv(
            source,
            sep=delimiter,
            header=0 if has_header else None,
            nrows=max_rows,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return DelimitedPreview(headers=[], rows=[], has_header=has_header)
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        logger.warning(
            "preview.file.parse_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return DelimitedPreview(
            headers=["Error"],
            rows=[[f"Failed to parse file: {e}"]],
            has_header=has_header,
            error=str(e),
        )

    if has_header:
        headers = [str(c) for c in frame.columns]
    else:
        headers = [f"Column{i + 1}" for i in range(len(frame.columns))]

    rows = frame.values.tolist()
    if has_header and not rows:
        rows = [[NO_DATA_PLACEHOLDER] + [""] * (len(headers) - 1)]

    return DelimitedPreview(headers=headers, rows=rows, has_header=has_header)
