"""
SQL module for centralized SQL generation.

Reusable utilities for building ClickHouse statements with proper
identifier quoting and join composition.
"""

from .core.identifier import qualify_column, quote_identifier
from .dialects.clickhouse import ClickHouseDialect
from .operations.select import SelectBuilder, build_select

__all__ = [
    "quote_identifier",
    "qualify_column",
    "ClickHouseDialect",
    "SelectBuilder",
    "build_select",
]
