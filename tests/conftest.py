"""Pytest configuration: in-memory ClickHouse client fake and opt-in suites.

Unit tests run against ``FakeClickHouseClient``, which implements the subset
of the clickhouse-connect client API the gateway uses and keeps table rows in
memory. Tests marked ``integration`` need a live server and only run with
RUN_INTEGRATION_TESTS=1 or --run-integration-tests.
"""

from __future__ import annotations

import csv
import io
import os
import re
from typing import Any, Dict, List, Optional

import pytest

from flatfile_bridge.config import get_settings
from flatfile_bridge.io.connectors.clickhouse_gateway import StoreGateway

INTEGRATION_OPTION = "run_integration_tests"
INTEGRATION_MARK = "integration"
INTEGRATION_ENV = "RUN_INTEGRATION_TESTS"

DEFAULT_TYPE_FAMILIES = ["UInt8", "Int32", "String", "Date", "Float64", "Bool", "UUID"]


def _unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if identifier.startswith("`") and identifier.endswith("`"):
        identifier = identifier[1:-1].replace("``", "`")
    return identifier


def _materialize(block: Any) -> bytes:
    if block is None:
        return b""
    if isinstance(block, (bytes, bytearray)):
        return bytes(block)
    if isinstance(block, str):
        return block.encode("utf-8")
    if hasattr(block, "read"):
        return block.read()
    return b"".join(block)


class FakeQueryResult:
    def __init__(self, rows: List[List[Any]]):
        self.result_rows = rows


class FakeQuerySummary:
    def __init__(self, written_rows: int):
        self.written_rows = written_rows


class FakeClickHouseClient:
    """In-memory stand-in for a clickhouse-connect client.

    Attributes used by tests:
        tables: table name -> list of data rows (lists of text)
        columns: table name -> list of (name, type)
        count_side_effects: consumed one per count; an Exception entry is raised
        stream_payload / stream_error: what raw_stream returns or raises
        insert_error: raised by raw_insert after the payload is consumed
    """

    def __init__(
        self,
        tables: Optional[Dict[str, List[List[str]]]] = None,
        ping_result: bool = True,
    ):
        self.tables: Dict[str, List[List[str]]] = tables if tables is not None else {}
        self.columns: Dict[str, List[tuple]] = {}
        self.type_families: List[str] = list(DEFAULT_TYPE_FAMILIES)
        self.ping_result = ping_result
        self.count_side_effects: List[Optional[Exception]] = []
        self.stream_payload: Any = b""
        self.stream_error: Optional[Exception] = None
        self.query_payload = b""
        self.insert_error: Optional[Exception] = None

        self.commands: List[str] = []
        self.queries: List[tuple] = []
        self.raw_queries: List[str] = []
        self.streams: List[Dict[str, Any]] = []
        self.inserts: List[Dict[str, Any]] = []
        self.closed = False

    def ping(self) -> bool:
        return self.ping_result

    def close(self) -> None:
        self.closed = True

    def command(self, sql: str, **kwargs: Any) -> Any:
        self.commands.append(sql)
        match = re.fullmatch(r"SELECT count\(\) FROM (`.*`)", sql)
        if match:
            if self.count_side_effects:
                effect = self.count_side_effects.pop(0)
                if effect is not None:
                    raise effect
            return len(self.tables.get(_unquote(match.group(1)), []))
        if sql.startswith("CREATE TABLE IF NOT EXISTS "):
            name = re.match(r"CREATE TABLE IF NOT EXISTS (`(?:[^`]|``)*`)", sql).group(1)
            self.tables.setdefault(_unquote(name), [])
            return None
        raise AssertionError(f"unexpected command: {sql}")

    def query(self, sql: str, parameters: Optional[Dict[str, Any]] = None, **kwargs: Any):
        self.queries.append((sql, parameters))
        if sql.startswith("SHOW TABLES FROM "):
            return FakeQueryResult([[name] for name in sorted(self.tables)])
        if "system.columns" in sql:
            return FakeQueryResult([list(c) for c in self.columns.get(parameters["table"], [])])
        if "system.data_type_families" in sql:
            return FakeQueryResult([[name] for name in self.type_families] + [[""]])
        raise AssertionError(f"unexpected query: {sql}")

    def raw_query(self, sql: str, fmt: Optional[str] = None, **kwargs: Any) -> bytes:
        self.raw_queries.append(sql)
        return self.query_payload

    def raw_stream(self, sql: str, settings: Optional[Dict[str, Any]] = None, fmt: Optional[str] = None, **kwargs: Any):
        self.streams.append({"sql": sql, "settings": settings, "fmt": fmt})
        if self.stream_error is not None:
            raise self.stream_error
        if isinstance(self.stream_payload, (bytes, bytearray)):
            return io.BytesIO(self.stream_payload)
        return self.stream_payload

    def raw_insert(
        self,
        table: str,
        column_names: Any = None,
        insert_block: Any = None,
        settings: Optional[Dict[str, Any]] = None,
        fmt: Optional[str] = None,
        **kwargs: Any,
    ) -> FakeQuerySummary:
        data = _materialize(insert_block)
        self.inserts.append({"table": table, "data": data, "settings": settings, "fmt": fmt})
        if self.insert_error is not None:
            raise self.insert_error

        delimiter = (settings or {}).get("format_csv_delimiter", ",")
        reader = csv.reader(io.StringIO(data.decode("utf-8"), newline=""), delimiter=delimiter)
        next(reader, None)
        rows = [row for row in reader if row]
        self.tables.setdefault(_unquote(table), []).extend(rows)
        return FakeQuerySummary(len(rows))


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached; each test starts and ends with a clean cache."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_client() -> FakeClickHouseClient:
    return FakeClickHouseClient()


@pytest.fixture
def gateway(fake_client: FakeClickHouseClient) -> StoreGateway:
    return StoreGateway(fake_client, "default")


def _env_enabled(name: str) -> bool:
    """Return True when the opt-in environment flag is set to '1'."""
    return os.getenv(name) == "1"


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration-tests",
        action="store_true",
        dest=INTEGRATION_OPTION,
        default=_env_enabled(INTEGRATION_ENV),
        help="Run tests against a live ClickHouse server "
        "(set RUN_INTEGRATION_TESTS=1 or pass --run-integration-tests).",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Skip the integration suite unless its flag is enabled."""
    if config.getoption(INTEGRATION_OPTION):
        return
    skip_integration = pytest.mark.skip(
        reason="Set RUN_INTEGRATION_TESTS=1 or pass --run-integration-tests to run."
    )
    for item in items:
        if INTEGRATION_MARK in item.keywords:
            item.add_marker(skip_integration)
