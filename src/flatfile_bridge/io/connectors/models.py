"""Connection and schema models for the ClickHouse gateway."""

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConnectionDescriptor(BaseModel):
    """Everything needed to open one store connection.

    The credential is the password for ``auth_type="password"`` and the
    access token for ``auth_type="jwt"``. Credentials are excluded from repr.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    protocol: Literal["http", "https"] = "http"
    host: str = "localhost"
    port: int = Field(default=8123, gt=0, le=65535)
    database: str = "default"
    username: str = "default"
    auth_type: Literal["password", "jwt"] = Field(default="password", alias="authType")
    password: Optional[str] = Field(default=None, repr=False)
    access_token: Optional[str] = Field(default=None, repr=False, alias="jwt")
    connect_timeout: int = Field(default=60, gt=0)
    socket_timeout: int = Field(default=60, gt=0)
    compress: bool = True

    @field_validator("protocol", "auth_type", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("host")
    @classmethod
    def _strip_scheme(cls, value: str) -> str:
        host = value.strip()
        for scheme in ("http://", "https://"):
            if host.lower().startswith(scheme):
                host = host[len(scheme):]
        return host.rstrip("/")

    @property
    def credential(self) -> Optional[str]:
        if self.auth_type == "jwt":
            return self.access_token or None
        return self.password or None

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``clickhouse_connect.get_client``."""
        kwargs: Dict[str, Any] = {
            "interface": self.protocol,
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "connect_timeout": self.connect_timeout,
            "send_receive_timeout": self.socket_timeout,
            "compress": self.compress,
        }
        if self.auth_type == "jwt":
            kwargs["access_token"] = self.access_token
        else:
            kwargs["username"] = self.username
            kwargs["password"] = self.password
        return kwargs


@dataclass(frozen=True)
class ColumnDescriptor:
    """A table column as reported by schema introspection."""

    name: str
    type: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type}
