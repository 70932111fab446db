"""
Store column types and their text parsers.

``StoreType`` is the closed set of ClickHouse types the engine can infer and
convert. Each member owns exactly one parser; type names outside the set
pass values through unchanged.

Accepted text formats are strict:
- Int32 / Int64: optional sign and ASCII digits, within the signed range
- Float64: decimal or scientific notation, NaN, Infinity
- Date: YYYY-MM-DD
- DateTime: YYYY-MM-DDTHH:MM[:SS[.ffffff]]
- Bool: true/false/1/0/yes/no (any case)
- UUID: canonical 8-4-4-4-12 hexadecimal form
"""

import re
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from flatfile_bridge.exceptions import ConversionError

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|NaN|Infinity)"
)
_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_DATETIME_RE = re.compile(
    r"(?P<base>[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}(?::[0-9]{2})?)"
    r"(?:\.(?P<fraction>[0-9]{1,6}))?"
)
_UUID_RE = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)

TRUE_VALUES = frozenset({"true", "1", "yes"})
FALSE_VALUES = frozenset({"false", "0", "no"})


def _parse_bounded_int(value: str, low: int, high: int) -> int:
    if not _INTEGER_RE.fullmatch(value):
        raise ValueError(f"not an integer: {value!r}")
    number = int(value)
    if not low <= number <= high:
        raise ValueError(f"integer out of range: {value!r}")
    return number


def parse_int32(value: str) -> int:
    return _parse_bounded_int(value, INT32_MIN, INT32_MAX)


def parse_int64(value: str) -> int:
    return _parse_bounded_int(value, INT64_MIN, INT64_MAX)


def parse_float64(value: str) -> float:
    if not _FLOAT_RE.fullmatch(value):
        raise ValueError(f"not a float: {value!r}")
    return float(value)


def parse_date(value: str) -> date:
    if not _DATE_RE.fullmatch(value):
        raise ValueError(f"not an ISO date: {value!r}")
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_datetime(value: str) -> datetime:
    match = _DATETIME_RE.fullmatch(value)
    if not match:
        raise ValueError(f"not an ISO date-time: {value!r}")

    base = match.group("base")
    fmt = "%Y-%m-%dT%H:%M:%S" if base.count(":") == 2 else "%Y-%m-%dT%H:%M"
    parsed = datetime.strptime(base, fmt)

    fraction = match.group("fraction")
    if fraction:
        parsed = parsed.replace(microsecond=int(fraction.ljust(6, "0")))
    return parsed


def parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def parse_uuid(value: str) -> uuid.UUID:
    if not _UUID_RE.fullmatch(value):
        raise ValueError(f"not a canonical UUID: {value!r}")
    return uuid.UUID(value)


def parse_string(value: str) -> str:
    return value


class StoreType(str, Enum):
    """Supported store column types, declared from narrowest to widest."""

    INT32 = "Int32"
    INT64 = "Int64"
    FLOAT64 = "Float64"
    DATE = "Date"
    DATETIME = "DateTime"
    BOOL = "Bool"
    UUID = "UUID"
    STRING = "String"

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["StoreType"]:
        """Return the member for a type name, or None for unsupported names."""
        try:
            return cls(name)
        except ValueError:
            return None

    def parse(self, value: str) -> Any:
        """Parse text into this type's Python value.

        Raises:
            ValueError: If the text does not match this type's format
        """
        return _PARSERS[self](value)

    def accepts(self, value: str) -> bool:
        try:
            self.parse(value)
        except ValueError:
            return False
        return True


_PARSERS: Dict[StoreType, Callable[[str], Any]] = {
    StoreType.INT32: parse_int32,
    StoreType.INT64: parse_int64,
    StoreType.FLOAT64: parse_float64,
    StoreType.DATE: parse_date,
    StoreType.DATETIME: parse_datetime,
    StoreType.BOOL: parse_bool,
    StoreType.UUID: parse_uuid,
    StoreType.STRING: parse_string,
}


def is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def convert(value: Optional[str], type_name: Optional[str]) -> Any:
    """
    Convert a text value to the Python value of a store type.

    Args:
        value: Text to convert; None or blank converts to None
        type_name: Store type name; unsupported names return the text unchanged

    Returns:
        Parsed value (int, float, date, datetime, bool, UUID or str) or None

    Raises:
        ConversionError: If the text is malformed for a supported type

    Examples:
        >>> convert("42", "Int32")
        42
        >>> convert("", "Date") is None
        True
        >>> convert("abc", "LowCardinality(String)")
        'abc'
    """
    if is_blank(value):
        return None

    store_type = StoreType.from_name(type_name)
    if store_type is None:
        return value

    try:
        return store_type.parse(value)
    except ValueError as e:
        raise ConversionError(value, store_type.value) from e
