"""Ingestion of delimited input into store tables."""

from .ingestion import IngestionPipeline

__all__ = ["IngestionPipeline"]
