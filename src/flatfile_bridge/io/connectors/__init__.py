"""Store connectivity: connection models and the ClickHouse gateway."""

from .clickhouse_gateway import (
    RowCountResult,
    StoreGateway,
    SupportedTypesCache,
    connect,
    open_gateway,
)
from .models import ColumnDescriptor, ConnectionDescriptor

__all__ = [
    "ConnectionDescriptor",
    "ColumnDescriptor",
    "StoreGateway",
    "SupportedTypesCache",
    "RowCountResult",
    "connect",
    "open_gateway",
]
