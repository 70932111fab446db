"""
SQL identifier handling utilities.

ClickHouse identifiers are wrapped in backticks. Internal backticks are
doubled, so any name, including ones with spaces, dots or non-ASCII
characters, is emitted as exactly one identifier.
"""

from typing import Optional


def quote_identifier(name: Optional[str]) -> str:
    """
    Quote a SQL identifier (table or column name).

    Args:
        name: The identifier to quote; ``None`` is treated as empty

    Returns:
        Backtick-quoted identifier

    Examples:
        >>> quote_identifier("events")
        '`events`'
        >>> quote_identifier("a`b")
        '`a``b`'
        >>> quote_identifier(None)
        '``'
    """
    if name is None:
        return "``"
    escaped = name.replace("`", "``")
    return f"`{escaped}`"


def qualify_column(table: Optional[str], column: Optional[str]) -> str:
    """
    Create a table-qualified column reference.

    Examples:
        >>> qualify_column("orders", "id")
        '`orders`.`id`'
    """
    return f"{quote_identifier(table)}.{quote_identifier(column)}"
