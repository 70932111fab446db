"""
Tests for the transfer command-line interface.

Commands that need a store run against an in-memory client by replacing
``open_gateway`` in the CLI module.
"""

import argparse
import json
from contextlib import contextmanager

import pytest

from flatfile_bridge.cli import transfer as cli
from flatfile_bridge.io.connectors.clickhouse_gateway import StoreGateway


@pytest.fixture
def cli_client(fake_client, monkeypatch):
    @contextmanager
    def fake_open_gateway(descriptor, client_factory=None, types_cache=None):
        gateway = StoreGateway(fake_client, descriptor.database)
        try:
            yield gateway
        finally:
            gateway.close()

    monkeypatch.setattr(cli, "open_gateway", fake_open_gateway)
    return fake_client


def _output(capsys):
    return json.loads(capsys.readouterr().out)


@pytest.mark.unit
class TestArgumentParsing:
    def test_parse_join(self):
        join = cli.parse_join("INNER:orders:users.id=orders.uid")
        assert join.table_name == "orders"
        assert join.join_type == "INNER"
        assert join.condition == "users.id=orders.uid"

    def test_parse_join_keeps_colons_in_condition(self):
        join = cli.parse_join(":orders:a.t = toDateTime('2024-01-01 00:00:00')")
        assert join.join_type is None
        assert join.condition == "a.t = toDateTime('2024-01-01 00:00:00')"

    def test_parse_join_rejects_short_value(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_join("orders")

    def test_parse_column_type(self):
        assert cli.parse_column_type("id=Int32") == ["id", "Int32"]
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_column_type("id")

    def test_missing_command_is_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 2

    def test_flags_override_settings(self):
        args = cli.build_parser().parse_args(
            ["--host", "ch-2", "--database", "sales", "--password", "pw", "tables"]
        )
        descriptor = cli.build_descriptor(args)
        assert descriptor.host == "ch-2"
        assert descriptor.database == "sales"
        assert descriptor.password == "pw"


@pytest.mark.unit
class TestPreviewFile:
    def test_preview_semicolon_file(self, tmp_path, capsys):
        path = tmp_path / "people.csv"
        path.write_text("id;name\n1;Ann\n2;Bob\n", encoding="utf-8")

        code = cli.main(["preview-file", str(path), "--delimiter", ";"])

        assert code == 0
        output = _output(capsys)
        assert output["headers"] == ["id", "name"]
        assert output["rows"] == [["1", "Ann"], ["2", "Bob"]]
        assert output["error"] is None

    def test_missing_file_exit_code(self, tmp_path, capsys):
        code = cli.main(["preview-file", str(tmp_path / "nope.csv")])
        assert code == 1
        assert "Error" in capsys.readouterr().err


@pytest.mark.unit
class TestStoreCommands:
    def test_tables(self, cli_client, capsys):
        cli_client.tables = {"events": [], "users": []}

        assert cli.main(["--password", "pw", "tables"]) == 0
        assert _output(capsys) == ["events", "users"]
        assert cli_client.closed

    def test_ingest_with_create_table(self, cli_client, tmp_path, capsys):
        path = tmp_path / "events.csv"
        path.write_bytes(b"id,name\n1,Ann\n2,Bob\n")

        code = cli.main(
            [
                "--password", "pw",
                "ingest", str(path),
                "--table", "events",
                "--column-type", "id=Int32",
                "--column-type", "name=String",
                "--create-table",
            ]
        )

        assert code == 0
        assert _output(capsys) == {
            "success": True,
            "rowsIngested": 2,
            "message": "Successfully ingested 2 rows",
        }
        assert cli_client.tables["events"] == [["1", "Ann"], ["2", "Bob"]]

    def test_ingest_from_yaml_config(self, cli_client, tmp_path, capsys):
        config = tmp_path / "upload.yml"
        config.write_text(
            "tableName: events\ncolumnTypes:\n  name: String\ntotalColumns: 2\n",
            encoding="utf-8",
        )
        data = tmp_path / "events.csv"
        data.write_bytes(b"id,name\n1,Ann\n")

        code = cli.main(["--password", "pw", "ingest", str(data), "--config", str(config)])

        assert code == 0
        assert _output(capsys)["rowsIngested"] == 1
        assert cli_client.inserts[-1]["data"] == b"name\nAnn\n"

    def test_failed_ingest_exit_code(self, cli_client, tmp_path, capsys):
        cli_client.insert_error = RuntimeError("Code: 27. Cannot parse input")
        path = tmp_path / "events.csv"
        path.write_bytes(b"id\nx\n")

        code = cli.main(["--password", "pw", "ingest", str(path), "--table", "events", "--columns", "id"])

        assert code == 1
        assert _output(capsys)["success"] is False

    def test_export_writes_file(self, cli_client, tmp_path, capsys):
        cli_client.stream_payload = b"id,name\n1,Ann\n"
        output = tmp_path / "out.csv"

        code = cli.main(
            ["--password", "pw", "export", "users", "--columns", "id,name", "--output", str(output)]
        )

        assert code == 0
        assert output.read_bytes() == b"id,name\n1,Ann\n"
        assert _output(capsys)["row_count"] == 2
        assert cli_client.streams[0]["sql"] == "SELECT `users`.`id`,`users`.`name` FROM `users`"

    def test_invalid_query_reports_error(self, cli_client, capsys):
        code = cli.main(["--password", "pw", "query", "users"])
        assert code == 1
        assert "column" in capsys.readouterr().err
