"""
Configuration management for FlatfileBridge.

Environment-based configuration using Pydantic BaseSettings. Connection
defaults for the ClickHouse store and the tuning knobs of the transfer
engine (chunk sizes, preview limits, ingestion error tolerance) live here.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from flatfile_bridge.io.connectors.models import ConnectionDescriptor

logger = structlog.get_logger(__name__)

# Determine project root for resolving .env by default
PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_ENV_FILE = PROJECT_ROOT / ".env"
ENV_FILE_OVERRIDE = os.getenv("FFB_ENV_FILE")
if ENV_FILE_OVERRIDE:
    env_file_candidate = Path(ENV_FILE_OVERRIDE).expanduser()
    if not env_file_candidate.is_absolute():
        env_file_candidate = PROJECT_ROOT / env_file_candidate
    SETTINGS_ENV_FILE = env_file_candidate
else:
    SETTINGS_ENV_FILE = DEFAULT_ENV_FILE


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Environment variables are loaded with the FFB_ prefix. For example,
    FFB_CLICKHOUSE_HOST overrides clickhouse_host. ENVIRONMENT and LOG_LEVEL
    are read without prefix.
    """

    ENVIRONMENT: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        validation_alias="ENVIRONMENT",
        description="Deployment environment",
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level (uppercase)",
    )

    app_name: str = Field(default="FlatfileBridge", description="Application name")

    # ClickHouse connection defaults
    clickhouse_protocol: Literal["http", "https"] = Field(
        default="http", description="Transport protocol for the ClickHouse HTTP interface"
    )
    clickhouse_host: str = Field(default="localhost", description="ClickHouse host")
    clickhouse_port: int = Field(default=8123, description="ClickHouse HTTP port")
    clickhouse_database: str = Field(default="default", description="Default database")
    clickhouse_username: str = Field(default="default", description="ClickHouse user")
    clickhouse_auth_type: Literal["password", "jwt"] = Field(
        default="password", description="Credential kind: password or jwt token"
    )
    clickhouse_password: str = Field(default="", description="ClickHouse password")
    clickhouse_access_token: str = Field(
        default="", description="JWT access token (auth_type=jwt)"
    )
    clickhouse_connect_timeout: int = Field(
        default=60, description="Connect timeout in seconds"
    )
    clickhouse_socket_timeout: int = Field(
        default=60, description="Send/receive timeout in seconds"
    )
    clickhouse_compress: bool = Field(
        default=True, description="Request compressed server responses"
    )

    # Transfer engine tuning
    export_chunk_size: int = Field(
        default=131072, gt=0, description="Bytes copied per export chunk"
    )
    ingest_chunk_size: int = Field(
        default=131072, gt=0, description="Bytes buffered per projected insert chunk"
    )
    preview_row_limit: int = Field(
        default=100, gt=0, description="Rows returned by query and file previews"
    )
    type_sample_rows: int = Field(
        default=100, gt=0, description="Rows sampled for column type suggestion"
    )
    max_chars_per_column: int = Field(
        default=100000, gt=0, description="Maximum characters in one delimited field"
    )
    ingest_allow_errors_ratio: float = Field(
        default=0.01, ge=0, le=1, description="Tolerated ratio of malformed rows"
    )
    ingest_allow_errors_num: int = Field(
        default=10, ge=0, description="Tolerated number of malformed rows"
    )

    @model_validator(mode="after")
    def validate_production_protocol(self) -> "Settings":
        """Validate that the production environment talks to the store over https.

        Raises:
            ValueError: If ENVIRONMENT is 'prod' and the protocol is plain http
        """
        if self.ENVIRONMENT == "prod" and self.clickhouse_protocol != "https":
            raise ValueError(
                "Production environment requires an https ClickHouse connection, "
                f"got: {self.clickhouse_protocol}"
            )
        return self

    def connection_descriptor(self) -> "ConnectionDescriptor":
        """Build the default connection descriptor from configured values."""
        from flatfile_bridge.io.connectors.models import ConnectionDescriptor

        return ConnectionDescriptor(
            protocol=self.clickhouse_protocol,
            host=self.clickhouse_host,
            port=self.clickhouse_port,
            database=self.clickhouse_database,
            username=self.clickhouse_username,
            auth_type=self.clickhouse_auth_type,
            password=self.clickhouse_password or None,
            access_token=self.clickhouse_access_token or None,
            connect_timeout=self.clickhouse_connect_timeout,
            socket_timeout=self.clickhouse_socket_timeout,
            compress=self.clickhouse_compress,
        )

    model_config = SettingsConfigDict(
        env_prefix="FFB_",
        env_file=str(SETTINGS_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance with loaded configuration
    """
    return Settings()
