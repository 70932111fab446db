"""Error taxonomy for store connectivity, value conversion and transfers.

Every error raised by the engine derives from ``BridgeError`` so outward
surfaces can catch a single type and report it. ``TransferError`` carries the
stage at which a transfer failed, mirroring the structured errors used by the
loader and discovery layers.
"""

from enum import Enum
from typing import Any, Dict, Optional


class BridgeError(Exception):
    """Base class for all FlatfileBridge errors."""


class ConfigurationError(BridgeError, ValueError):
    """Invalid caller input detected before any store I/O happens."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class StoreConnectionError(BridgeError):
    """The store could not be reached or the connection could not be set up."""


class AuthenticationError(StoreConnectionError):
    """The store rejected the supplied credential, or no credential was given."""


class ConversionError(BridgeError, ValueError):
    """A text value does not match the format of the requested store type."""

    def __init__(self, value: Any, type_name: str):
        self.value = value
        self.type_name = type_name
        super().__init__(f"Cannot convert {value!r} to {type_name}")


class TransferStage(str, Enum):
    """Enum for transfer pipeline stages."""

    QUERY = "query"
    CREATE_TABLE = "create_table"
    INITIAL_ROW_COUNT = "initial_row_count"
    INSERT = "insert"
    FINAL_ROW_COUNT = "final_row_count"
    EXPORT = "export"


class TransferError(BridgeError):
    """Structured error for export/ingestion failures with stage context."""

    def __init__(
        self,
        stage: TransferStage,
        table: Optional[str],
        original_error: Optional[BaseException],
        message: str,
    ):
        self.stage = TransferStage(stage)
        self.table = table
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        detail = self.args[0]
        if self.original_error is not None:
            detail = f"{detail}: {self.original_error}"
        return detail

    def to_dict(self) -> Dict[str, Optional[str]]:
        """Convert to structured dict for logging."""
        return {
            "error_type": type(self).__name__,
            "table": self.table,
            "failed_stage": self.stage.value,
            "message": str(self),
            "original_error_type": (
                type(self.original_error).__name__ if self.original_error else None
            ),
            "original_error_message": (
                str(self.original_error) if self.original_error else None
            ),
        }
