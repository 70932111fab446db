"""Export pipeline: stream query results into a delimited byte sink.

The result set is never buffered whole. Bytes are copied from the store's
response stream to the sink in fixed-size chunks while a quote-aware
counter tallies the lines written (header included).
"""

import time
import uuid
from contextlib import closing
from typing import BinaryIO, Callable, Optional

from flatfile_bridge.config import get_settings
from flatfile_bridge.exceptions import ConfigurationError, TransferError, TransferStage
from flatfile_bridge.infrastructure.models.transfer import (
    QueryPreview,
    QuerySpec,
    TransferResult,
)
from flatfile_bridge.infrastructure.sql.operations.select import SelectBuilder
from flatfile_bridge.io.connectors.clickhouse_gateway import StoreGateway
from flatfile_bridge.io.readers.delimited import decode_delimiter
from flatfile_bridge.utils.logging import get_logger

structured_logger = get_logger(__name__)

ESTIMATE_SENTINEL = 1

ProgressCallback = Callable[[int, int, int], None]


class LineCounter:
    """Counts delimited records in a byte stream fed chunk by chunk.

    Newlines inside double-quoted fields are not record boundaries. A final
    record without a trailing newline still counts.
    """

    def __init__(self) -> None:
        self.lines = 0
        self._in_quotes = False
        self._open_record = False

    def feed(self, chunk: bytes) -> None:
        if not chunk:
            return
        for index, segment in enumerate(chunk.split(b'"')):
            if index:
                self._in_quotes = not self._in_quotes
            if not self._in_quotes:
                self.lines += segment.count(b"\n")
        self._open_record = self._in_quotes or not chunk.endswith(b"\n")

    @property
    def total(self) -> int:
        return self.lines + (1 if self._open_record else 0)


class ExportPipeline:
    """Builds the export query and copies its result stream into a sink."""

    def __init__(
        self,
        gateway: StoreGateway,
        chunk_size: Optional[int] = None,
        preview_limit: Optional[int] = None,
    ):
        settings = get_settings()
        self.gateway = gateway
        self.chunk_size = chunk_size or settings.export_chunk_size
        self.preview_limit = preview_limit or settings.preview_row_limit
        self._builder = SelectBuilder(gateway.dialect)
        self._logger = structured_logger

    def build_query(self, spec: QuerySpec, limit: Optional[int] = None) -> str:
        """Build the SELECT for ``spec``; a LIMIT is added only when requested."""
        sql = self._builder.build(spec.table_name, spec.columns, spec.joins)
        limit = limit or spec.limit
        if limit:
            sql = self.gateway.dialect.with_limit(sql, limit)
        return sql

    def export(
        self,
        spec: QuerySpec,
        sink: BinaryIO,
        progress: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        """
        Stream the query result of ``spec`` into ``sink`` as delimited text.

        Args:
            spec: Table, columns, joins, delimiter code and optional limit
            sink: Writable binary sink; flushed but not closed
            progress: Called after each chunk with
                (bytes_written, lines_written, estimated_rows)

        Returns:
            TransferResult whose row_count is the number of lines written,
            header included (an empty result set yields 1)

        Raises:
            ConfigurationError: Invalid spec or missing sink; nothing is written
            TransferError: Query execution or streaming failed; bytes already
                written stay in the sink
        """
        if sink is None:
            raise ConfigurationError("sink", "Output sink must not be None")

        sql = self.build_query(spec)
        delimiter = decode_delimiter(spec.delimiter)
        execution_id = f"exp_{uuid.uuid4().hex[:8]}"
        log = self._logger.bind(table=spec.table_name, execution_id=execution_id)

        estimate = self.gateway.try_count_rows(spec.table_name)
        estimated_rows = estimate.or_sentinel(ESTIMATE_SENTINEL)
        if not estimate.ok:
            log.warning("export.estimate.degraded", sentinel=ESTIMATE_SENTINEL)

        log.info(
            "export.started",
            columns=len(spec.columns),
            joins=len(spec.joins),
            estimated_rows=estimated_rows,
            chunk_size=self.chunk_size,
        )
        start = time.perf_counter()

        try:
            stream = self.gateway.stream_query(sql, delimiter)
        except Exception as e:
            log.error("export.query.failed", error=str(e), error_type=type(e).__name__)
            raise TransferError(
                TransferStage.EXPORT, spec.table_name, e, "Failed to export data"
            ) from e

        counter = LineCounter()
        bytes_written = 0
        try:
            with closing(stream):
                while True:
                    chunk = stream.read(self.chunk_size)
                    if not chunk:
                        break
                    sink.write(chunk)
                    bytes_written += len(chunk)
                    counter.feed(chunk)
                    if progress is not None:
                        progress(bytes_written, counter.total, estimated_rows)
        except Exception as e:
            log.error(
                "export.stream.failed",
                bytes_written=bytes_written,
                lines_written=counter.total,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransferError(
                TransferStage.EXPORT, spec.table_name, e, "Failed to export data"
            ) from e
        finally:
            flush = getattr(sink, "flush", None)
            if flush is not None:
                flush()

        duration_ms = (time.perf_counter() - start) * 1000
        log.info(
            "export.completed",
            lines=counter.total,
            bytes=bytes_written,
            duration_ms=round(duration_ms, 2),
        )
        return TransferResult(
            row_count=counter.total,
            bytes_transferred=bytes_written,
            estimated_rows=estimated_rows,
            duration_ms=duration_ms,
            execution_id=execution_id,
        )

    def preview(self, spec: QuerySpec, limit: Optional[int] = None) -> QueryPreview:
        """Run the query of ``spec`` limited to a few rows and return them."""
        sql = self.build_query(spec, limit=limit or spec.limit or self.preview_limit)
        try:
            headers, rows = self.gateway.fetch_rows(sql)
        except Exception as e:
            self._logger.error(
                "export.preview.failed",
                table=spec.table_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransferError(
                TransferStage.QUERY, spec.table_name, e, "Failed to query data"
            ) from e
        return QueryPreview(headers=headers, rows=rows)
