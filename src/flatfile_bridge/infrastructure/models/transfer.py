"""
Request and result models shared by the export and ingestion pipelines.

Request models accept both snake_case names and the camelCase keys used by
JSON job configurations (``tableName``, ``joinTables``, ``columnTypes``...).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class JoinSpec(BaseModel):
    """One JOIN clause: target table, join type and a raw ON condition.

    The condition is a trusted SQL fragment emitted verbatim.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    table_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("table_name", "tableName", "table")
    )
    join_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("join_type", "joinType", "type")
    )
    condition: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("condition", "joinCondition", "on"),
    )

    @field_validator("join_type")
    @classmethod
    def _normalize_join_type(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return " ".join(value.split()).upper() or None


class QuerySpec(BaseModel):
    """Main table, projected columns, joins and output delimiter of one query."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    table_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("table_name", "tableName", "table")
    )
    columns: List[str] = Field(default_factory=list)
    joins: List[JoinSpec] = Field(
        default_factory=list, validation_alias=AliasChoices("joins", "joinTables")
    )
    delimiter: str = Field(default=",")
    limit: Optional[int] = Field(default=None, gt=0)


class UploadConfig(BaseModel):
    """Ingestion job configuration for one delimited source."""

    model_config = ConfigDict(populate_by_name=True)

    table_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("table_name", "tableName")
    )
    create_new_table: bool = Field(
        default=False,
        validation_alias=AliasChoices("create_new_table", "createNewTable"),
    )
    column_types: Dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("column_types", "columnTypes"),
    )
    delimiter: Optional[str] = Field(default=",")
    total_columns: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("total_columns", "totalColumns", "totalCols"),
    )

    @field_validator("column_types", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value


@dataclass
class TransferResult:
    """Structured outcome of one export or ingestion.

    Attributes:
        row_count: Export: lines written including the header.
            Ingestion: data rows added to the table (after minus before).
        bytes_transferred: Bytes copied to the sink or produced for insert
        estimated_rows: Export-only best-effort row estimate (1 when unknown)
        duration_ms: Wall-clock time of the transfer
        execution_id: Identifier correlating log events of one transfer
    """

    row_count: int
    bytes_transferred: int = 0
    estimated_rows: Optional[int] = None
    duration_ms: float = 0.0
    execution_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UploadOutcome:
    """Outward-facing ingestion response."""

    success: bool
    rows_ingested: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "rowsIngested": self.rows_ingested,
            "message": self.message,
        }


@dataclass
class QueryPreview:
    """Headers and rows of a limited query."""

    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DelimitedPreview:
    """First rows of a delimited file, or the reason it could not be parsed."""

    headers: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    has_header: bool = True
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
