"""Composition of table creation, ingestion and export."""

from .transfer import TransferOrchestrator, export_to_sink, ingest_from_source

__all__ = [
    "TransferOrchestrator",
    "export_to_sink",
    "ingest_from_source",
]
