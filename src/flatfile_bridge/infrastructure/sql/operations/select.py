"""
SQL SELECT statement builders.

Composes the projection, FROM clause and JOIN clauses of an export or
preview query. The builder never adds filtering, ordering or limiting;
callers append LIMIT themselves where needed.
"""

from typing import List, Optional, Protocol, Sequence

from flatfile_bridge.exceptions import ConfigurationError
from flatfile_bridge.infrastructure.models.transfer import JoinSpec
from flatfile_bridge.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_JOIN_TYPE = "LEFT JOIN"
DEFAULT_JOIN_CONDITION = "1=1"


class Dialect(Protocol):
    """Protocol for SQL dialects."""

    name: str

    def quote(self, identifier: Optional[str]) -> str: ...
    def qualify(self, table: Optional[str], column: Optional[str]) -> str: ...


class SelectBuilder:
    """
    Builder for SELECT ... FROM ... JOIN statements.

    Example:
        >>> from flatfile_bridge.infrastructure.sql import ClickHouseDialect, SelectBuilder
        >>> builder = SelectBuilder(ClickHouseDialect())
        >>> builder.build("users", ["id", "orders.total"], [JoinSpec(table_name="orders",
        ...     join_type="LEFT JOIN", condition="users.id=orders.uid")])
        'SELECT `users`.`id`,`orders`.`total` FROM `users` LEFT JOIN `orders` ON users.id=orders.uid'
    """

    def __init__(self, dialect: Dialect):
        self.dialect = dialect

    def build(
        self,
        main_table: Optional[str],
        columns: Optional[Sequence[str]],
        joins: Optional[Sequence[JoinSpec]] = None,
    ) -> str:
        """
        Build the SELECT statement.

        Args:
            main_table: Table in the FROM clause; unqualified columns belong to it
            columns: Ordered column entries, bare ("id") or qualified ("orders.id")
            joins: JOIN clauses emitted in the given order

        Returns:
            SELECT SQL statement without a trailing terminator

        Raises:
            ConfigurationError: If main_table is empty or no usable column is given
        """
        if not main_table or not main_table.strip():
            raise ConfigurationError("table_name", "Table name must not be empty")
        if not columns:
            raise ConfigurationError("columns", "At least one column must be selected")

        projection = self._projection(main_table, columns)
        if not projection:
            raise ConfigurationError("columns", "At least one column must be selected")

        sql = f"SELECT {','.join(projection)} FROM {self.dialect.quote(main_table)}"
        for clause in self._join_clauses(main_table, joins or []):
            sql += f" {clause}"
        return sql

    def _projection(self, main_table: str, columns: Sequence[str]) -> List[str]:
        rendered = []
        for column in columns:
            if column is None or not column.strip():
                logger.warning("query.column.skipped", table=main_table, column=column)
                continue
            rendered.append(self._render_column(main_table, column.strip()))
        return rendered

    def _render_column(self, main_table: str, column: str) -> str:
        if "." not in column:
            return self.dialect.qualify(main_table, column)

        parts = column.split(".")
        if len(parts) == 2 and all(parts):
            return self.dialect.qualify(parts[0], parts[1])

        # Malformed qualification: keep it as one identifier
        return self.dialect.quote(column)

    def _join_clauses(self, main_table: str, joins: Sequence[JoinSpec]) -> List[str]:
        clauses = []
        for join in joins:
            if not join.table_name or not join.table_name.strip():
                logger.warning("query.join.skipped", table=main_table, join_type=join.join_type)
                continue

            join_type = join.join_type or DEFAULT_JOIN_TYPE
            if not join_type.endswith("JOIN"):
                join_type = f"{join_type} JOIN"

            condition = (join.condition or "").strip()
            if not condition:
                logger.warning(
                    "query.join.unconditional",
                    table=main_table,
                    join_table=join.table_name,
                    fallback=DEFAULT_JOIN_CONDITION,
                )
                condition = DEFAULT_JOIN_CONDITION

            clauses.append(
                f"{join_type} {self.dialect.quote(join.table_name.strip())} ON {condition}"
            )
        return clauses


def build_select(
    main_table: Optional[str],
    columns: Optional[Sequence[str]],
    joins: Optional[Sequence[JoinSpec]] = None,
) -> str:
    """Build a ClickHouse SELECT statement; see ``SelectBuilder.build``."""
    from ..dialects.clickhouse import ClickHouseDialect

    return SelectBuilder(ClickHouseDialect()).build(main_table, columns, joins)
