"""Command-line interface for FlatfileBridge."""
