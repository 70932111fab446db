"""Text-to-store-type conversion and column type inference."""

from .inference import detect_type, suggest_column_types
from .store_types import StoreType, convert

__all__ = [
    "StoreType",
    "convert",
    "detect_type",
    "suggest_column_types",
]
