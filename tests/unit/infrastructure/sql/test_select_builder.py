"""
Unit tests for the SELECT/JOIN builder.
"""

import json
import logging

import pytest

from flatfile_bridge.exceptions import ConfigurationError
from flatfile_bridge.infrastructure.models.transfer import JoinSpec
from flatfile_bridge.infrastructure.sql import ClickHouseDialect, SelectBuilder, build_select


@pytest.fixture
def builder():
    return SelectBuilder(ClickHouseDialect())


@pytest.mark.unit
class TestProjection:
    """Column rendering rules."""

    def test_unqualified_columns_belong_to_main_table(self, builder):
        sql = builder.build("users", ["id", "name"], [])
        assert sql == "SELECT `users`.`id`,`users`.`name` FROM `users`"

    def test_qualified_column_keeps_its_table(self, builder):
        sql = builder.build("users", ["users.id", "orders.total"], [])
        assert sql == "SELECT `users`.`id`,`orders`.`total` FROM `users`"

    def test_column_with_two_dots_is_one_identifier(self, builder):
        sql = builder.build("users", ["a.b.c"], [])
        assert sql == "SELECT `a.b.c` FROM `users`"

    def test_column_with_empty_part_is_one_identifier(self, builder):
        sql = builder.build("users", [".id"], [])
        assert sql == "SELECT `.id` FROM `users`"

    def test_blank_column_entries_are_skipped(self, builder):
        sql = builder.build("users", ["id", "  ", "name"], [])
        assert sql == "SELECT `users`.`id`,`users`.`name` FROM `users`"

    def test_column_with_backtick_is_escaped(self, builder):
        sql = builder.build("users", ["we`ird"], [])
        assert sql == "SELECT `users`.`we``ird` FROM `users`"

    def test_no_limit_order_or_where_is_added(self, builder):
        sql = builder.build("users", ["id"], [])
        for keyword in ("LIMIT", "ORDER", "WHERE", "GROUP", ";"):
            assert keyword not in sql


@pytest.mark.unit
class TestJoins:
    """JOIN clause rendering rules."""

    def test_single_left_join(self, builder):
        joins = [JoinSpec(table_name="orders", join_type="LEFT JOIN", condition="users.id=orders.uid")]
        sql = builder.build("users", ["users.id", "orders.total"], joins)
        assert sql.count("LEFT JOIN `orders` ON users.id=orders.uid") == 1
        assert sql.endswith("FROM `users` LEFT JOIN `orders` ON users.id=orders.uid")

    def test_joins_keep_caller_order(self, builder):
        joins = [
            JoinSpec(table_name="b", join_type="INNER JOIN", condition="a.id=b.id"),
            JoinSpec(table_name="c", join_type="RIGHT JOIN", condition="a.id=c.id"),
        ]
        sql = builder.build("a", ["id"], joins)
        assert sql.index("INNER JOIN `b`") < sql.index("RIGHT JOIN `c`")

    def test_missing_join_type_defaults_to_left_join(self, builder):
        sql = builder.build("a", ["id"], [JoinSpec(table_name="b", condition="a.id=b.id")])
        assert sql.endswith("LEFT JOIN `b` ON a.id=b.id")

    def test_bare_join_type_gets_join_keyword(self, builder):
        sql = builder.build("a", ["id"], [JoinSpec(table_name="b", join_type="inner", condition="1=1")])
        assert "INNER JOIN `b` ON 1=1" in sql

    def test_empty_condition_falls_back_to_unconditional(self, builder, caplog):
        caplog.set_level(logging.WARNING)
        sql = builder.build("a", ["id"], [JoinSpec(table_name="b", join_type="LEFT JOIN", condition="")])
        assert sql.endswith("LEFT JOIN `b` ON 1=1")
        events = [
            json.loads(r.getMessage())["event"]
            for r in caplog.records
            if r.name.startswith("flatfile_bridge")
        ]
        assert "query.join.unconditional" in events

    def test_join_without_table_is_skipped(self, builder):
        sql = builder.build("a", ["id"], [JoinSpec(table_name="", condition="x=y")])
        assert "JOIN" not in sql

    def test_accepts_camel_case_join_keys(self, builder):
        join = JoinSpec.model_validate(
            {"tableName": "orders", "joinType": "full join", "joinCondition": "u.id=o.uid"}
        )
        sql = builder.build("users", ["id"], [join])
        assert sql.endswith("FULL JOIN `orders` ON u.id=o.uid")


@pytest.mark.unit
class TestValidation:
    """Invalid inputs fail before any SQL is produced."""

    @pytest.mark.parametrize("table", [None, "", "   "])
    def test_empty_main_table_raises(self, builder, table):
        with pytest.raises(ConfigurationError) as exc_info:
            builder.build(table, ["id"], [])
        assert exc_info.value.field == "table_name"

    @pytest.mark.parametrize("columns", [None, [], ["", " "]])
    def test_empty_columns_raise(self, builder, columns):
        with pytest.raises(ConfigurationError) as exc_info:
            builder.build("users", columns, [])
        assert exc_info.value.field == "columns"

    def test_configuration_error_is_value_error(self, builder):
        with pytest.raises(ValueError):
            builder.build("users", [], [])


@pytest.mark.unit
def test_build_select_uses_clickhouse_dialect():
    assert build_select("t", ["c"]) == "SELECT `t`.`c` FROM `t`"
