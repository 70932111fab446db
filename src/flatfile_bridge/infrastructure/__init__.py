"""Infrastructure layer: SQL generation, value conversion and shared models."""
