"""Readers for delimited text input."""

from .delimited import ColumnProjection, decode_delimiter, preview_delimited

__all__ = [
    "ColumnProjection",
    "decode_delimiter",
    "preview_delimited",
]
