"""Shared request/result models."""

from .transfer import (
    DelimitedPreview,
    JoinSpec,
    QueryPreview,
    QuerySpec,
    TransferResult,
    UploadConfig,
    UploadOutcome,
)

__all__ = [
    "JoinSpec",
    "QuerySpec",
    "UploadConfig",
    "TransferResult",
    "UploadOutcome",
    "QueryPreview",
    "DelimitedPreview",
]
