"""Core SQL utilities package."""

from .identifier import qualify_column, quote_identifier

__all__ = [
    "quote_identifier",
    "qualify_column",
]
