"""ClickHouse store gateway.

Wraps one ``clickhouse_connect`` client for the duration of a request:
schema introspection, row counts, table creation, and raw CSVWithNames
byte streams in both directions. Connections are opened per request with
``open_gateway`` and released on every exit path.
"""

import csv
import io
from contextlib import contextmanager
from dataclasses import dataclass
from typing import (
    Any,
    BinaryIO,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

import clickhouse_connect

from flatfile_bridge.config import get_settings
from flatfile_bridge.exceptions import (
    AuthenticationError,
    StoreConnectionError,
    TransferError,
    TransferStage,
)
from flatfile_bridge.infrastructure.sql.dialects.clickhouse import (
    COLUMNS_SQL,
    SUPPORTED_TYPES_SQL,
    ClickHouseDialect,
)
from flatfile_bridge.io.connectors.models import ColumnDescriptor, ConnectionDescriptor
from flatfile_bridge.utils.logging import get_logger

structured_logger = get_logger(__name__)

WIRE_FORMAT = "CSVWithNames"

InsertSource = Union[bytes, BinaryIO, Iterable[bytes]]
ClientFactory = Callable[..., Any]


@dataclass(frozen=True)
class RowCountResult:
    """Outcome of a row count read that may have failed.

    Export estimates degrade a failed read to a sentinel; ingestion's
    before/after reads require a count and turn a failure into a
    ``TransferError``.
    """

    table: str
    count: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.count is not None

    def or_sentinel(self, sentinel: int) -> int:
        return self.count if self.ok else sentinel

    def require(self, stage: TransferStage, message: str) -> int:
        if not self.ok:
            raise TransferError(stage, self.table, self.error, message)
        return self.count


class SupportedTypesCache:
    """Supported store type names, fetched at most once per cache instance."""

    def __init__(self) -> None:
        self._types: Optional[List[str]] = None

    @property
    def loaded(self) -> bool:
        return self._types is not None

    def get(self, loader: Callable[[], List[str]]) -> List[str]:
        if self._types is None:
            self._types = loader()
        return list(self._types)

    def clear(self) -> None:
        self._types = None


class StoreGateway:
    """Request-scoped access to one ClickHouse database through a client."""

    def __init__(
        self,
        client: Any,
        database: str,
        types_cache: Optional[SupportedTypesCache] = None,
        allow_errors_ratio: float = 0.01,
        allow_errors_num: int = 10,
    ):
        self._client = client
        self.database = database
        self.dialect = ClickHouseDialect()
        self._types_cache = types_cache if types_cache is not None else SupportedTypesCache()
        self.allow_errors_ratio = allow_errors_ratio
        self.allow_errors_num = allow_errors_num
        self._logger = structured_logger.bind(database=database)

    # Lifecycle ---------------------------------------------------------

    def ping(self) -> bool:
        return bool(self._client.ping())

    def close(self) -> None:
        """Close the underlying client."""
        if self._client is not None:
            self._client.close()
            self._client = None
            self._logger.info("store.gateway.closed")

    def __enter__(self) -> "StoreGateway":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Introspection -----------------------------------------------------

    def list_tables(self) -> List[str]:
        result = self._client.query(self.dialect.build_show_tables(self.database))
        return [row[0] for row in result.result_rows]

    def get_columns(self, table: str) -> List[ColumnDescriptor]:
        result = self._client.query(
            COLUMNS_SQL, parameters={"database": self.database, "table": table}
        )
        return [ColumnDescriptor(name=row[0], type=row[1]) for row in result.result_rows]

    def count_rows(self, table: str) -> int:
        return int(self._client.command(self.dialect.build_count(table)))

    def try_count_rows(self, table: str) -> RowCountResult:
        """Count rows, capturing failure in the result instead of raising."""
        try:
            return RowCountResult(table=table, count=self.count_rows(table))
        except Exception as e:
            self._logger.warning(
                "store.row_count.failed",
                table=table,
                error=str(e),
                error_type=type(e).__name__,
            )
            return RowCountResult(table=table, error=e)

    def supported_types(self) -> List[str]:
        """Store type names, String first and the rest alphabetical."""
        return self._types_cache.get(self._load_supported_types)

    def _load_supported_types(self) -> List[str]:
        result = self._client.query(SUPPORTED_TYPES_SQL)
        names = sorted({row[0] for row in result.result_rows if row[0]})
        if "String" in names:
            names.remove("String")
        self._logger.info("store.supported_types.loaded", count=len(names) + 1)
        return ["String"] + names

    # DDL ---------------------------------------------------------------

    def create_table(self, table: str, column_types: Mapping[str, str]) -> None:
        sql = self.dialect.build_create_table(table, column_types)
        self._client.command(sql)
        self._logger.info("store.table.created", table=table, columns=len(column_types))

    # Data --------------------------------------------------------------

    def fetch_rows(self, sql: str) -> Tuple[List[str], List[List[str]]]:
        """Run a (limited) query and return its header and rows as text."""
        payload = self._client.raw_query(sql, fmt=WIRE_FORMAT)
        reader = csv.reader(io.StringIO(payload.decode("utf-8"), newline=""))
        headers = next(reader, [])
        return headers, [row for row in reader]

    def stream_query(self, sql: str, delimiter: str = ",") -> BinaryIO:
        """Execute a query and return its CSVWithNames result as a byte stream."""
        return self._client.raw_stream(
            sql,
            settings={"format_csv_delimiter": delimiter},
            fmt=WIRE_FORMAT,
        )

    def insert_settings(self, delimiter: Optional[str] = None) -> Dict[str, Any]:
        settings: Dict[str, Any] = {
            "input_format_with_names_use_header": 1,
            "input_format_skip_unknown_fields": 1,
            "input_format_allow_errors_ratio": self.allow_errors_ratio,
            "input_format_allow_errors_num": self.allow_errors_num,
        }
        if delimiter is not None:
            settings["format_csv_delimiter"] = delimiter
        return settings

    def insert_stream(
        self, table: str, source: InsertSource, delimiter: Optional[str] = None
    ) -> int:
        """
        Stream CSVWithNames bytes into a table.

        Args:
            table: Destination table (quoted here)
            source: Raw bytes, a binary stream or an iterable of byte chunks
            delimiter: Field delimiter of the source; None means comma

        Returns:
            Rows written as reported by the server (0 when not reported)
        """
        summary = self._client.raw_insert(
            self.dialect.quote(table),
            insert_block=source,
            settings=self.insert_settings(delimiter),
            fmt=WIRE_FORMAT,
        )
        return int(getattr(summary, "written_rows", 0) or 0)


def _default_client_factory(**kwargs: Any) -> Any:
    return clickhouse_connect.get_client(**kwargs)


def connect(
    descriptor: ConnectionDescriptor,
    client_factory: Optional[ClientFactory] = None,
    types_cache: Optional[SupportedTypesCache] = None,
) -> StoreGateway:
    """
    Open a connection described by ``descriptor`` and verify it with a ping.

    Raises:
        AuthenticationError: Missing credential, rejected credential or failed ping
        StoreConnectionError: The store could not be reached
    """
    if descriptor.credential is None:
        kind = "JWT token" if descriptor.auth_type == "jwt" else "Password"
        raise AuthenticationError(f"{kind} is required for {descriptor.auth_type} authentication")

    factory = client_factory or _default_client_factory
    log = structured_logger.bind(
        host=descriptor.host,
        port=descriptor.port,
        database=descriptor.database,
        protocol=descriptor.protocol,
        auth_type=descriptor.auth_type,
    )

    try:
        client = factory(**descriptor.client_kwargs())
    except Exception as e:
        log.error("store.connect.failed", error=str(e), error_type=type(e).__name__)
        if "authentication" in str(e).lower():
            raise AuthenticationError(f"Authentication failed: {e}") from e
        raise StoreConnectionError(f"Connection failed: {e}") from e

    try:
        alive = client.ping()
    except Exception as e:
        client.close()
        raise StoreConnectionError(f"Connection test failed: {e}") from e
    if not alive:
        client.close()
        raise AuthenticationError("Connection test failed - invalid credentials or token")

    settings = get_settings()
    log.info("store.connect.succeeded")
    return StoreGateway(
        client,
        descriptor.database,
        types_cache=types_cache,
        allow_errors_ratio=settings.ingest_allow_errors_ratio,
        allow_errors_num=settings.ingest_allow_errors_num,
    )


@contextmanager
def open_gateway(
    descriptor: ConnectionDescriptor,
    client_factory: Optional[ClientFactory] = None,
    types_cache: Optional[SupportedTypesCache] = None,
) -> Iterator[StoreGateway]:
    """Scoped gateway: connected on entry, closed on every exit path."""
    gateway = connect(descriptor, client_factory=client_factory, types_cache=types_cache)
    try:
        yield gateway
    finally:
        gateway.close()
