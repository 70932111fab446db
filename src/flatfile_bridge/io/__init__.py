"""I/O layer: store connectivity, delimited readers, export and ingestion."""
