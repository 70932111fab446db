"""Configuration management for FlatfileBridge.

Usage:
    >>> from flatfile_bridge.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.clickhouse_host)
"""

from flatfile_bridge.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
