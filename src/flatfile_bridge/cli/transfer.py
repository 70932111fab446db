"""
Command-line front end for FlatfileBridge transfers.

Connection details come from settings (FFB_CLICKHOUSE_* environment
variables or .env); flags override individual values. Results are printed
as JSON on stdout.

Usage:
    python -m flatfile_bridge.cli tables
    python -m flatfile_bridge.cli columns events
    python -m flatfile_bridge.cli preview-file data.tsv --delimiter '\\t'
    python -m flatfile_bridge.cli query users --columns id,name,orders.total \\
        --join "LEFT JOIN:orders:users.id=orders.uid" --limit 20
    python -m flatfile_bridge.cli export users --columns id,name --output users.csv
    python -m flatfile_bridge.cli ingest data.csv --table events --create-table
    python -m flatfile_bridge.cli ingest data.csv --config upload.yml
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from flatfile_bridge.config import get_settings
from flatfile_bridge.exceptions import BridgeError, ConfigurationError
from flatfile_bridge.infrastructure.models.transfer import JoinSpec, QuerySpec, UploadConfig
from flatfile_bridge.io.connectors.clickhouse_gateway import open_gateway
from flatfile_bridge.io.connectors.models import ConnectionDescriptor
from flatfile_bridge.io.readers.delimited import decode_delimiter, preview_delimited
from flatfile_bridge.orchestration.transfer import TransferOrchestrator
from flatfile_bridge.utils.logging import get_logger

logger = get_logger(__name__)


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_join(value: str) -> JoinSpec:
    """Parse ``TYPE:TABLE:CONDITION``; TYPE and CONDITION may be empty."""
    parts = value.split(":", 2)
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(
            f"join must look like TYPE:TABLE:CONDITION, got {value!r}"
        )
    join_type, table, condition = parts
    return JoinSpec(table_name=table, join_type=join_type or None, condition=condition or None)


def parse_column_type(value: str) -> List[str]:
    name, sep, type_name = value.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"column type must look like NAME=TYPE, got {value!r}")
    return [name, type_name]


def load_config_file(path: str) -> Dict[str, Any]:
    """Load a JSON or YAML job file into a dict."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError("config", f"Cannot read config file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError("config", f"Config file {path} must hold a mapping")
    return raw


def build_descriptor(args: argparse.Namespace) -> ConnectionDescriptor:
    base = get_settings().connection_descriptor().model_dump()
    overrides = {
        "protocol": args.protocol,
        "host": args.host,
        "port": args.port,
        "database": args.database,
        "username": args.user,
        "auth_type": args.auth_type,
        "password": args.password,
    }
    base.update({k: v for k, v in overrides.items() if v is not None})
    return ConnectionDescriptor(**base)


def build_query_spec(args: argparse.Namespace) -> QuerySpec:
    data: Dict[str, Any] = load_config_file(args.config) if args.config else {}
    if args.table:
        data["table_name"] = args.table
    if args.columns:
        data["columns"] = _split_list(args.columns)
    if args.join:
        data["joins"] = args.join
    if args.delimiter:
        data["delimiter"] = args.delimiter
    if args.limit:
        data["limit"] = args.limit
    return QuerySpec.model_validate(data)


def build_upload_config(args: argparse.Namespace) -> UploadConfig:
    data: Dict[str, Any] = load_config_file(args.config) if args.config else {}
    if args.table:
        data["table_name"] = args.table
    if args.create_table:
        data["create_new_table"] = True
    if args.delimiter:
        data["delimiter"] = args.delimiter
    if args.total_columns:
        data["total_columns"] = args.total_columns
    if args.column_type:
        data["column_types"] = {name: type_name for name, type_name in args.column_type}
    elif args.columns:
        data["column_types"] = {name: "String" for name in _split_list(args.columns)}
    return UploadConfig.model_validate(data)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("connection (defaults from FFB_CLICKHOUSE_*)")
    group.add_argument("--protocol", choices=["http", "https"], default=None)
    group.add_argument("--host", default=None)
    group.add_argument("--port", type=int, default=None)
    group.add_argument("--database", default=None)
    group.add_argument("--user", default=None)
    group.add_argument("--auth-type", choices=["password", "jwt"], default=None)
    group.add_argument(
        "--password",
        default=None,
        help="Prefer FFB_CLICKHOUSE_PASSWORD; command lines are visible to other users",
    )


def _add_query_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("table", nargs="?", help="Main table")
    parser.add_argument("--columns", help="Comma-separated columns, bare or table.column")
    parser.add_argument(
        "--join",
        action="append",
        type=parse_join,
        help="Join as TYPE:TABLE:CONDITION (repeatable)",
    )
    parser.add_argument("--delimiter", help="Delimiter code, e.g. ',' or '\\t'")
    parser.add_argument("--limit", type=int, help="Maximum rows")
    parser.add_argument("--config", help="JSON/YAML file with the query definition")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flatfile_bridge.cli",
        description="FlatfileBridge - move data between ClickHouse and delimited files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_connection_arguments(parser)

    subparsers = parser.add_subparsers(
        title="commands", dest="command", required=True, help="Command to execute"
    )

    subparsers.add_parser("tables", help="List tables of the database")
    subparsers.add_parser("types", help="List supported column types")

    columns_parser = subparsers.add_parser("columns", help="List columns of a table")
    columns_parser.add_argument("table")

    preview_parser = subparsers.add_parser("preview-file", help="Show the first rows of a file")
    preview_parser.add_argument("file")
    preview_parser.add_argument("--delimiter", default=",")
    preview_parser.add_argument("--no-header", action="store_true", default=False)

    query_parser = subparsers.add_parser("query", help="Preview a query result")
    _add_query_arguments(query_parser)

    export_parser = subparsers.add_parser("export", help="Export a query result to a file")
    _add_query_arguments(export_parser)
    export_parser.add_argument("--output", required=True, help="Destination file")

    ingest_parser = subparsers.add_parser("ingest", help="Load a delimited file into a table")
    ingest_parser.add_argument("file")
    ingest_parser.add_argument("--table")
    ingest_parser.add_argument("--columns", help="Comma-separated columns to insert")
    ingest_parser.add_argument(
        "--column-type",
        action="append",
        type=parse_column_type,
        help="NAME=TYPE (repeatable); order defines the inserted columns",
    )
    ingest_parser.add_argument("--total-columns", type=int)
    ingest_parser.add_argument("--create-table", action="store_true", default=False)
    ingest_parser.add_argument("--delimiter")
    ingest_parser.add_argument("--config", help="JSON/YAML upload configuration")

    return parser


def _preview_file(args: argparse.Namespace) -> int:
    delimiter = decode_delimiter(args.delimiter)
    limit = get_settings().preview_row_limit
    with open(args.file, "rb") as source:
        preview = preview_delimited(
            source, delimiter=delimiter, has_header=not args.no_header, max_rows=limit
        )
    _emit(preview.to_dict())
    return 0 if preview.error is None else 1


def _run_with_gateway(args: argparse.Namespace) -> int:
    with open_gateway(build_descriptor(args)) as gateway:
        orchestrator = TransferOrchestrator(gateway)

        if args.command == "tables":
            _emit(gateway.list_tables())
        elif args.command == "types":
            _emit(gateway.supported_types())
        elif args.command == "columns":
            _emit([c.to_dict() for c in gateway.get_columns(args.table)])
        elif args.command == "query":
            _emit(orchestrator.query(build_query_spec(args)).to_dict())
        elif args.command == "export":
            spec = build_query_spec(args)
            with open(args.output, "wb") as sink:
                result = orchestrator.download(spec, sink)
            _emit({"output": str(Path(args.output)), **result.to_dict()})
        elif args.command == "ingest":
            config = build_upload_config(args)
            with open(args.file, "rb") as source:
                outcome = orchestrator.upload_outcome(config, source)
            _emit(outcome.to_dict())
            return 0 if outcome.success else 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 success, 1 transfer or connection failure, 2 usage error)
    """
    args = build_parser().parse_args(argv)

    try:
        if args.command == "preview-file":
            return _preview_file(args)
        return _run_with_gateway(args)
    except BridgeError as e:
        logger.error("cli.command.failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
