"""
ClickHouse-specific SQL dialect implementation.

Provides the statements the transfer engine issues besides SELECT/JOIN:
row counts, table creation, table listing and the supported-types lookup.
"""

from typing import Mapping, Optional

from ..core.identifier import qualify_column, quote_identifier

DEFAULT_COLUMN_TYPE = "String"

SUPPORTED_TYPES_SQL = (
    "SELECT name FROM system.data_type_families "
    "UNION DISTINCT "
    "SELECT alias_to AS name FROM system.data_type_families WHERE alias_to != ''"
)

COLUMNS_SQL = (
    "SELECT name, type FROM system.columns "
    "WHERE database = {database:String} AND table = {table:String} "
    "ORDER BY position"
)


class ClickHouseDialect:
    """ClickHouse SQL dialect implementation."""

    name = "clickhouse"

    def quote(self, identifier: Optional[str]) -> str:
        """Quote an identifier using ClickHouse syntax (backticks)."""
        return quote_identifier(identifier)

    def qualify(self, table: Optional[str], column: Optional[str]) -> str:
        """Create a table-qualified column reference."""
        return qualify_column(table, column)

    def build_count(self, table: str) -> str:
        return f"SELECT count() FROM {self.quote(table)}"

    def build_show_tables(self, database: str) -> str:
        return f"SHOW TABLES FROM {self.quote(database)}"

    def with_limit(self, sql: str, limit: int) -> str:
        """Append a LIMIT clause to an already built SELECT."""
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        return f"{sql} LIMIT {int(limit)}"

    def build_create_table(self, table: str, column_types: Mapping[str, str]) -> str:
        """
        Build a CREATE TABLE IF NOT EXISTS statement on the MergeTree engine.

        Blank column names are skipped and blank type names become String.

        Args:
            table: Table name
            column_types: Ordered mapping of column name to store type name

        Returns:
            CREATE TABLE SQL statement
        """
        definitions = []
        for column, type_name in column_types.items():
            if not column or not column.strip():
                continue
            column_type = (type_name or "").strip() or DEFAULT_COLUMN_TYPE
            definitions.append(f"{self.quote(column)} {column_type}")

        if not definitions:
            raise ValueError("CREATE TABLE needs at least one named column")

        return (
            f"CREATE TABLE IF NOT EXISTS {self.quote(table)} "
            f"({', '.join(definitions)}) "
            "ENGINE = MergeTree() ORDER BY tuple()"
        )
