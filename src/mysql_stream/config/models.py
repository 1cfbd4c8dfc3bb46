"""Pydantic configuration models for the MySQL change stream."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal, Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

DEFAULT_MYSQL_PORT = 3306


class Flavor(StrEnum):
    """Supported source database dialects."""

    MYSQL = "mysql"
    MARIADB = "mariadb"


class MysqlStreamConfig(BaseModel, frozen=True, extra="forbid"):
    """Configuration of the ``mysql_stream`` input.

    Read-only once the input is constructed.  ``tables`` scopes the initial
    snapshot only; the live binlog stream is filtered by ``database`` alone.
    """

    addr: str
    database: str = Field(min_length=1)
    user: str = Field(min_length=1)
    password: SecretStr
    tables: tuple[str, ...] = ()
    flavor: Flavor = Flavor.MYSQL
    stream_snapshot: bool = False
    enable_ssl: bool = False
    # Certificate verification is only skipped when asked for explicitly.
    ssl_skip_verify: bool = False
    ssl_ca: str | None = None
    # Unique per replica in the topology; a random id is drawn when unset.
    server_id: int | None = Field(default=None, ge=1, le=2**32 - 1)
    snapshot_batch_size: int = Field(default=100, ge=1)
    connect_timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("addr")
    @classmethod
    def validate_addr(cls, v: str) -> str:
        host, sep, port = v.rpartition(":")
        if not sep:
            host, port = v, ""
        if not host:
            msg = f"addr '{v}' must be 'host' or 'host:port'"
            raise ValueError(msg)
        if port and not (port.isdigit() and 0 < int(port) < 65536):
            msg = f"addr '{v}' has an invalid port"
            raise ValueError(msg)
        return v

    @field_validator("tables")
    @classmethod
    def validate_tables(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for table in v:
            if not table or table.count(".") > 1:
                msg = f"Table '{table}' must be 'table' or 'database.table'"
                raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def check_ssl_options(self) -> Self:
        """TLS tuning options only make sense with TLS turned on."""
        if not self.enable_ssl and (self.ssl_skip_verify or self.ssl_ca):
            msg = "ssl_skip_verify and ssl_ca require enable_ssl: true"
            raise ValueError(msg)
        return self

    @property
    def host(self) -> str:
        host, sep, _port = self.addr.rpartition(":")
        return host if sep else self.addr

    @property
    def port(self) -> int:
        _host, sep, port = self.addr.rpartition(":")
        return int(port) if sep and port else DEFAULT_MYSQL_PORT

    def snapshot_tables(self) -> list[str]:
        """Configured tables with the ``database.`` prefix stripped."""
        prefix = f"{self.database}."
        return [t.removeprefix(prefix) for t in self.tables]


class LoggingConfig(BaseModel, extra="forbid"):
    """structlog output settings."""

    level: Literal["debug", "info", "warning", "error"] = "info"
    renderer: Literal["console", "json"] = "console"


class StreamConfig(BaseModel, extra="forbid"):
    """Top-level config file: exactly one input plus logging."""

    input: dict[str, dict[str, Any]]
    logging: LoggingConfig = LoggingConfig()

    @field_validator("input")
    @classmethod
    def check_single_input(
        cls, v: dict[str, dict[str, Any]]
    ) -> dict[str, dict[str, Any]]:
        if len(v) != 1:
            msg = f"Exactly one input must be configured, got {len(v)}"
            raise ValueError(msg)
        return v

    @property
    def input_type(self) -> str:
        return next(iter(self.input))

    @property
    def input_config(self) -> dict[str, Any]:
        return self.input[self.input_type]
