"""Tunnel models for the port-forward supervisor.

This module defines the immutable tunnel specification with its content-derived
identity, the database descriptors attached to database tunnels, and the
read-only view handed to the dashboard.
"""

import hashlib
import uuid
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ..common.utils import MAX_PORT, MIN_PORT

DEFAULT_GROUP = "default"
DEFAULT_NAMESPACE = "default"


class TunnelType(str, Enum):
    """What the forwarded port speaks, used for dashboard shortcuts."""

    HTTP = "http"
    DATABASE = "database"


class TunnelState(str, Enum):
    """Process supervision state of a tunnel."""

    STOPPED = "stopped"
    STARTING = "starting"
    STARTED_UNKNOWN = "started-unknown"
    STARTED_HEALTHY = "started-healthy"
    STARTED_UNHEALTHY = "started-unhealthy"


class DatabaseKind(str, Enum):
    """Supported database engines."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"

    @property
    def driver(self) -> "DriverDescriptor":
        return DATABASE_DRIVERS[self]


@dataclass(frozen=True)
class DriverDescriptor:
    """Connection metadata for one database kind."""

    port: int
    jdbc_prefix: str
    product: str
    jdbc_version: str
    driver_name: str
    driver_version: str
    driver_class: str
    driver_ref: str
    dbms: str
    exact_driver_version: str
    identifier_quote: str


DATABASE_DRIVERS: dict[DatabaseKind, DriverDescriptor] = {
    DatabaseKind.POSTGRESQL: DriverDescriptor(
        port=5432,
        jdbc_prefix="postgresql",
        product="PostgreSQL",
        jdbc_version="4.2",
        driver_name="PostgreSQL JDBC Driver",
        driver_version="42.6.0",
        driver_class="org.postgresql.Driver",
        driver_ref="postgresql",
        dbms="POSTGRES",
        exact_driver_version="42.6",
        identifier_quote='\\"',
    ),
    DatabaseKind.MYSQL: DriverDescriptor(
        port=3306,
        jdbc_prefix="mysql",
        product="MySQL",
        jdbc_version="4.2",
        driver_name="MySQL Connector/J",
        driver_version=(
            "mysql-connector-j-8.2.0 "
            "(Revision: 06a1f724497fd81c6a659131fda822c9e5085b6c)"
        ),
        driver_class="com.mysql.cj.jdbc.Driver",
        driver_ref="mysql.8",
        dbms="MYSQL",
        exact_driver_version="8.2",
        identifier_quote="`",
    ),
}


class DatabaseSpec(BaseModel):
    """Database reachable through a tunnel."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    kind: DatabaseKind = Field(description="Database engine")
    name: str = Field(min_length=1, description="Database name")
    username: str | None = Field(default=None, description="Login user")

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        """Accept kinds in any letter case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class TunnelSpec(BaseModel):
    """Desired forwarding rule, as read from the configuration file.

    Field aliases match the camelCase keys used in the YAML file.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    group: str = Field(default=DEFAULT_GROUP, description="Logical label")
    context: str = Field(min_length=1, description="kubectl context")
    target: str = Field(min_length=1, description="Resource to forward to")
    namespace: str = Field(default=DEFAULT_NAMESPACE, description="Namespace")
    local_port: int = Field(
        alias="localPort", ge=MIN_PORT, le=MAX_PORT, description="Local bind port"
    )
    destination_port: str = Field(
        alias="remotePort", min_length=1, description="Port number or name"
    )
    start_on_startup: bool = Field(
        default=False, alias="startOnStartup", description="Start when loaded"
    )
    type: TunnelType | None = Field(default=None, description="Optional tag")
    database: DatabaseSpec | None = Field(
        default=None, description="Database descriptor for database tunnels"
    )

    @field_validator("group", "namespace", mode="before")
    @classmethod
    def default_when_missing(cls, v: Any, info: ValidationInfo) -> Any:
        """Treat explicit nulls and blanks like missing keys."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_GROUP if info.field_name == "group" else DEFAULT_NAMESPACE
        return v

    @field_validator("destination_port", mode="before")
    @classmethod
    def port_as_string(cls, v: Any) -> Any:
        """Numeric ports are kept as text, named ports pass through."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        """Accept types in any letter case."""
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    @cached_property
    def id(self) -> str:
        """Content-derived identity, stable across reloads and restarts."""
        return tunnel_identity(
            self.group,
            self.context,
            self.target,
            self.namespace,
            self.local_port,
            self.destination_port,
        )

    @property
    def label(self) -> str:
        """Human readable name used in logs."""
        return (
            f"{self.context}.{self.target}[{self.local_port}:{self.destination_port}]"
        )

    def command(self, kubectl: str = "kubectl") -> list[str]:
        """Build the kubectl port-forward command line."""
        return [
            kubectl,
            f"--context={self.context}",
            "port-forward",
            "--address",
            "0.0.0.0",
            "--namespace",
            self.namespace,
            self.target,
            f"{self.local_port}:{self.destination_port}",
        ]


def tunnel_identity(
    group: str,
    context: str,
    target: str,
    namespace: str,
    local_port: int,
    destination_port: str,
) -> str:
    """Hash the defining fields of a tunnel into a UUID-shaped identifier.

    The fields are concatenated in order, hashed with SHA-256, and the digest
    is turned into a name-based (version 3) UUID.
    """
    key = f"{group}{context}{target}{namespace}{local_port}{destination_port}"
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    name_hash = hashlib.md5(digest, usedforsecurity=False).digest()
    return str(uuid.UUID(bytes=name_hash, version=3))


class TunnelView(BaseModel):
    """Read-only snapshot of a live tunnel for presentation."""

    model_config = ConfigDict(frozen=True)

    id: str
    group: str
    context: str
    target: str
    namespace: str
    local_port: int
    destination_port: str
    start_on_startup: bool
    state: TunnelState
    is_running: bool
    last_checked_ago: float | None = Field(
        default=None, description="Seconds since the last successful probe"
    )
    type: TunnelType | None = None
    database: DatabaseSpec | None = None
