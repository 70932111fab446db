"""Ingestion pipeline: stream delimited text into a store table.

When the caller's headers cover every column of the file and the delimiter
is not whitespace, the source bytes go to the store untouched, read in
chunks. Otherwise a ``ColumnProjection`` forwards only the selected columns,
row by row. The number of rows added is the difference between row counts
read before and after the insert; both reads are required to succeed.
"""

import time
import uuid
from typing import BinaryIO, Iterator, Optional, Sequence

from flatfile_bridge.config import get_settings
from flatfile_bridge.exceptions import ConfigurationError, TransferError, TransferStage
from flatfile_bridge.infrastructure.models.transfer import TransferResult
from flatfile_bridge.io.connectors.clickhouse_gateway import StoreGateway
from flatfile_bridge.io.readers.delimited import ColumnProjection
from flatfile_bridge.utils.logging import get_logger

structured_logger = get_logger(__name__)


class SourceChunks:
    """Reads a binary source in fixed-size chunks and counts the bytes read."""

    def __init__(self, source: BinaryIO, chunk_size: int):
        self.source = source
        self.chunk_size = chunk_size
        self.bytes_read = 0

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.source.read(self.chunk_size)
            if not chunk:
                return
            self.bytes_read += len(chunk)
            yield chunk


class IngestionPipeline:
    """Inserts a delimited byte stream into a table and reports rows added."""

    def __init__(
        self,
        gateway: StoreGateway,
        chunk_size: Optional[int] = None,
        max_field_size: Optional[int] = None,
    ):
        settings = get_settings()
        self.gateway = gateway
        self.chunk_size = chunk_size or settings.ingest_chunk_size
        self.max_field_size = max_field_size or settings.max_chars_per_column
        self._logger = structured_logger

    @staticmethod
    def _validate(
        table_name: Optional[str],
        headers: Optional[Sequence[str]],
        delimiter: Optional[str],
        source: Optional[BinaryIO],
    ) -> None:
        if not table_name or not table_name.strip():
            raise ConfigurationError("table_name", "Table name must not be empty")
        if not headers:
            raise ConfigurationError("headers", "Headers must not be empty")
        if delimiter is None or delimiter == "":
            raise ConfigurationError("delimiter", "Delimiter must not be empty")
        if source is None:
            raise ConfigurationError("source", "Input stream must not be None")

    def ingest(
        self,
        expected_column_count: Optional[int],
        table_name: str,
        headers: Sequence[str],
        delimiter: str,
        source: BinaryIO,
    ) -> TransferResult:
        """
        Insert the delimited rows of ``source`` into ``table_name``.

        Args:
            expected_column_count: Number of columns in the file; None or
                a non-positive value means ``len(headers)``
            table_name: Destination table
            headers: Columns to insert, in output order
            delimiter: Field delimiter character of ``source``
            source: Readable binary stream whose first row is a header; not closed

        Returns:
            TransferResult whose row_count is rows added to the table

        Raises:
            ConfigurationError: Invalid arguments, or headers missing from the input
            TransferError: Row count read or insert failed
        """
        self._validate(table_name, headers, delimiter, source)

        headers = [h.strip() for h in headers]
        if expected_column_count is None or expected_column_count <= 0:
            self._logger.warning(
                "ingestion.column_count.defaulted",
                table=table_name,
                provided=expected_column_count,
                default=len(headers),
            )
            expected_column_count = len(headers)

        execution_id = f"ing_{uuid.uuid4().hex[:8]}"
        log = self._logger.bind(table=table_name, execution_id=execution_id)
        start = time.perf_counter()

        before = self.gateway.try_count_rows(table_name).require(
            TransferStage.INITIAL_ROW_COUNT, "Failed to get initial row count"
        )

        direct = len(headers) == expected_column_count and not delimiter.isspace()
        log.info(
            "ingestion.started",
            mode="direct" if direct else "projected",
            columns=len(headers),
            expected_columns=expected_column_count,
            rows_before=before,
        )

        projection = None
        chunks = None
        try:
            if direct:
                chunks = SourceChunks(source, self.chunk_size)
                self.gateway.insert_stream(table_name, iter(chunks), delimiter)
            else:
                projection = ColumnProjection(
                    source,
                    headers,
                    delimiter,
                    chunk_size=self.chunk_size,
                    max_field_size=self.max_field_size,
                )
                self.gateway.insert_stream(table_name, iter(projection))
        except ConfigurationError:
            raise
        except Exception as e:
            log.error("ingestion.insert.failed", error=str(e), error_type=type(e).__name__)
            raise TransferError(
                TransferStage.INSERT, table_name, e, "Failed to ingest data"
            ) from e
        finally:
            if projection is not None:
                projection.close()

        after = self.gateway.try_count_rows(table_name).require(
            TransferStage.FINAL_ROW_COUNT, "Failed to get final row count"
        )

        rows_added = max(after - before, 0)
        duration_ms = (time.perf_counter() - start) * 1000
        log.info(
            "ingestion.completed",
            rows_added=rows_added,
            rows_projected=projection.rows_processed if projection else None,
            duration_ms=round(duration_ms, 2),
        )
        return TransferResult(
            row_count=rows_added,
            bytes_transferred=projection.bytes_produced if projection else chunks.bytes_read,
            duration_ms=duration_ms,
            execution_id=execution_id,
        )
