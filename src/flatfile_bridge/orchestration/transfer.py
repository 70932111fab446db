"""Transfer orchestration: compose table creation, ingestion and export.

The orchestrator owns no transfer logic of its own. It sequences
"create table if requested" then "ingest" for uploads, and "build query"
then "export" for downloads, delegating to the pipelines.
"""

from typing import BinaryIO, Dict, Optional

from flatfile_bridge.config import Settings, get_settings
from flatfile_bridge.exceptions import (
    BridgeError,
    ConfigurationError,
    TransferError,
    TransferStage,
)
from flatfile_bridge.infrastructure.conversion import suggest_column_types
from flatfile_bridge.infrastructure.models.transfer import (
    QueryPreview,
    QuerySpec,
    TransferResult,
    UploadConfig,
    UploadOutcome,
)
from flatfile_bridge.io.connectors.clickhouse_gateway import (
    ClientFactory,
    StoreGateway,
    open_gateway,
)
from flatfile_bridge.io.connectors.models import ConnectionDescriptor
from flatfile_bridge.io.exporters.export_pipeline import ExportPipeline, ProgressCallback
from flatfile_bridge.io.loader.ingestion import IngestionPipeline
from flatfile_bridge.io.readers.delimited import (
    NO_DATA_PLACEHOLDER,
    decode_delimiter,
    preview_delimited,
)
from flatfile_bridge.utils.logging import get_logger

logger = get_logger(__name__)


class TransferOrchestrator:
    """Runs uploads, downloads and query previews against one gateway."""

    def __init__(self, gateway: StoreGateway, settings: Optional[Settings] = None):
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.exporter = ExportPipeline(
            gateway,
            chunk_size=self.settings.export_chunk_size,
            preview_limit=self.settings.preview_row_limit,
        )
        self.ingestion = IngestionPipeline(
            gateway,
            chunk_size=self.settings.ingest_chunk_size,
            max_field_size=self.settings.max_chars_per_column,
        )

    def query(self, spec: QuerySpec) -> QueryPreview:
        return self.exporter.preview(spec)

    def download(
        self,
        spec: QuerySpec,
        sink: BinaryIO,
        progress: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        return self.exporter.export(spec, sink, progress=progress)

    def detect_column_types(self, source: BinaryIO, delimiter: str) -> Dict[str, str]:
        """
        Suggest column types from the first rows of a seekable source.

        The source is rewound to where it started before returning.
        """
        if not source.seekable():
            raise ConfigurationError(
                "column_types",
                "Column types are required when the input cannot be re-read",
            )

        position = source.tell()
        try:
            preview = preview_delimited(
                source,
                delimiter=delimiter,
                has_header=True,
                max_rows=self.settings.type_sample_rows,
            )
        finally:
            source.seek(position)

        if preview.error is not None:
            raise ConfigurationError("source", f"Cannot sample input: {preview.error}")
        if not preview.headers:
            raise ConfigurationError("source", "Input stream has no header row")

        sample = preview.rows
        if sample and sample[0][0] == NO_DATA_PLACEHOLDER:
            sample = []
        suggestions = suggest_column_types(preview.headers, sample)
        logger.info(
            "upload.column_types.detected",
            columns=len(suggestions),
            sampled_rows=len(sample),
        )
        return suggestions

    def upload(self, config: UploadConfig, source: BinaryIO) -> TransferResult:
        """
        Create the destination table when requested, then ingest ``source``.

        Raises:
            ConfigurationError: Invalid configuration
            TransferError: Table creation or ingestion failed
        """
        if source is None:
            raise ConfigurationError("source", "Input stream must not be None")
        if not config.table_name or not config.table_name.strip():
            raise ConfigurationError("table_name", "Table name must not be empty")

        delimiter = decode_delimiter(config.delimiter)
        column_types = dict(config.column_types)

        if config.create_new_table:
            if not column_types:
                column_types = self.detect_column_types(source, delimiter)
            try:
                self.gateway.create_table(config.table_name, column_types)
            except ValueError as e:
                raise ConfigurationError("column_types", str(e)) from e
            except Exception as e:
                logger.error(
                    "upload.create_table.failed",
                    table=config.table_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise TransferError(
                    TransferStage.CREATE_TABLE,
                    config.table_name,
                    e,
                    "Failed to create table",
                ) from e

        headers = list(column_types)
        expected = config.total_columns or len(headers)
        return self.ingestion.ingest(expected, config.table_name, headers, delimiter, source)

    def upload_outcome(self, config: UploadConfig, source: BinaryIO) -> UploadOutcome:
        """Run ``upload`` and report the result in the outward response shape."""
        try:
            result = self.upload(config, source)
        except BridgeError as e:
            logger.error(
                "upload.failed",
                table=config.table_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return UploadOutcome(success=False, rows_ingested=0, message=str(e))
        return UploadOutcome(
            success=True,
            rows_ingested=result.row_count,
            message=f"Successfully ingested {result.row_count} rows",
        )


def export_to_sink(
    descriptor: ConnectionDescriptor,
    spec: QuerySpec,
    sink: BinaryIO,
    client_factory: Optional[ClientFactory] = None,
) -> TransferResult:
    """Open a gateway, export ``spec`` into ``sink`` and close the gateway."""
    with open_gateway(descriptor, client_factory=client_factory) as gateway:
        return TransferOrchestrator(gateway).download(spec, sink)


def ingest_from_source(
    descriptor: ConnectionDescriptor,
    config: UploadConfig,
    source: BinaryIO,
    client_factory: Optional[ClientFactory] = None,
) -> TransferResult:
    """Open a gateway, upload ``source`` per ``config`` and close the gateway."""
    with open_gateway(descriptor, client_factory=client_factory) as gateway:
        return TransferOrchestrator(gateway).upload(config, source)
