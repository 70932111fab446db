"""
FlatfileBridge - streaming transfers between ClickHouse and delimited files.

Builds safe SELECT/JOIN queries, streams query results into delimited text
sinks, and streams delimited text into table inserts with optional column
projection and type inference.
"""

__version__ = "0.1.0"
