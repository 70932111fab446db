"""Export of store query results into delimited sinks."""

from .export_pipeline import ExportPipeline, LineCounter

__all__ = [
    "ExportPipeline",
    "LineCounter",
]
