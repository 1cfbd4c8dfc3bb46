"""asyncmy-backed replication client.

Holds two connections to the source: one carries the binlog dump, the
other answers metadata and coordinate queries.  Decoded row events are
flattened into RowsEvent notifications and handed to the registered
RowChangeHandler one at a time; the handler suspending stalls the stream.
"""

from __future__ import annotations

import random
import ssl
from typing import Any

import structlog

from mysql_stream.config.models import MysqlStreamConfig
from mysql_stream.errors import SourceConnectionError, StreamError
from mysql_stream.sources.base import (
    BinlogPosition,
    RowAction,
    RowChangeHandler,
    RowsEvent,
    TableSchema,
)
from mysql_stream.sources.binlog.position import read_binlog_position
from mysql_stream.sources.binlog.snapshot import TableSnapshot

logger = structlog.get_logger()

_SERVER_ID_MIN = 1001
_SERVER_ID_MAX = 2**32 - 1


def random_server_id() -> int:
    """Draw a replica server id unlikely to collide with another reader."""
    return random.randint(_SERVER_ID_MIN, _SERVER_ID_MAX)


def build_ssl_context(config: MysqlStreamConfig) -> ssl.SSLContext | None:
    """TLS context for the source connection, or None when TLS is off."""
    if not config.enable_ssl:
        return None
    context = ssl.create_default_context(cafile=config.ssl_ca)
    if config.ssl_skip_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        logger.warning("binlog.tls_verification_disabled", addr=config.addr)
    return context


def rows_event_from_binlog(event: Any, action: str) -> RowsEvent:
    """Flatten a decoded binlog rows event into a RowsEvent.

    Update rows become consecutive (before, after) images.  Values keep the
    table's column order.
    """
    rows: list[list[Any]] = []
    for row in event.rows:
        if "after_values" in row:
            rows.append(list(row["before_values"].values()))
            rows.append(list(row["after_values"].values()))
        else:
            rows.append(list(row["values"].values()))
    return RowsEvent(
        table=TableSchema(
            schema=event.schema,
            name=event.table,
            columns=[column.name for column in event.columns],
        ),
        action=action,
        rows=rows,
    )


class AsyncmyReplicationClient:
    """ReplicationClient implementation on top of asyncmy's BinLogStream."""

    def __init__(self, config: MysqlStreamConfig) -> None:
        self._config = config
        self._server_id = config.server_id or random_server_id()
        self._handler: RowChangeHandler | None = None
        self._conn: Any = None
        self._ctl_conn: Any = None

    @property
    def server_id(self) -> int:
        return self._server_id

    def set_handler(self, handler: RowChangeHandler) -> None:
        self._handler = handler

    def _connect_kwargs(self) -> dict[str, Any]:
        cfg = self._config
        return {
            "host": cfg.host,
            "port": cfg.port,
            "user": cfg.user,
            "password": cfg.password.get_secret_value(),
            "connect_timeout": cfg.connect_timeout_seconds,
            "ssl": build_ssl_context(cfg),
        }

    async def _connect(self) -> Any:
        from asyncmy import connect
        from asyncmy.errors import MySQLError

        try:
            return await connect(**self._connect_kwargs())
        except (MySQLError, OSError) as exc:
            msg = f"Cannot connect to {self._config.addr}: {exc}"
            raise SourceConnectionError(msg) from exc

    async def open(self) -> None:
        """Open the control and binlog connections."""
        self._ctl_conn = await self._connect()
        try:
            self._conn = await self._connect()
        except SourceConnectionError:
            await self.close()
            raise
        logger.info(
            "binlog.connected",
            addr=self._config.addr,
            flavor=self._config.flavor.value,
            server_id=self._server_id,
            ssl=self._config.enable_ssl,
        )

    def _connections(self) -> tuple[Any, Any]:
        if self._conn is None or self._ctl_conn is None:
            msg = "Replication client is not open"
            raise StreamError(msg)
        return self._conn, self._ctl_conn

    def _require_handler(self) -> RowChangeHandler:
        if self._handler is None:
            msg = "No row change handler registered"
            raise StreamError(msg)
        return self._handler

    async def get_current_position(self) -> BinlogPosition:
        _conn, ctl_conn = self._connections()
        return await read_binlog_position(ctl_conn, self._config.flavor)

    async def run_from_snapshot(self) -> None:
        """Replay the configured tables, then stream from the snapshot point."""
        handler = self._require_handler()
        conn = await self._connect()
        try:
            snapshot = TableSnapshot(
                conn,
                database=self._config.database,
                tables=self._config.snapshot_tables(),
                flavor=self._config.flavor,
                batch_size=self._config.snapshot_batch_size,
            )
            position = await snapshot.replay(handler)
        finally:
            conn.close()
        await self.run_from_position(position)

    async def run_from_position(self, position: BinlogPosition) -> None:
        """Stream row events from *position* until the connection closes."""
        from asyncmy.replication import BinLogStream
        from asyncmy.replication.row_events import (
            DeleteRowsEvent,
            UpdateRowsEvent,
            WriteRowsEvent,
        )

        handler = self._require_handler()
        conn, ctl_conn = self._connections()
        actions: dict[type, RowAction] = {
            WriteRowsEvent: RowAction.INSERT,
            UpdateRowsEvent: RowAction.UPDATE,
            DeleteRowsEvent: RowAction.DELETE,
        }
        stream = BinLogStream(
            conn,
            ctl_conn,
            self._server_id,
            master_log_file=position.name,
            master_log_position=position.pos,
            resume_stream=True,
            blocking=True,
            only_events=list(actions),
        )
        logger.info(
            "binlog.streaming", position=str(position), server_id=self._server_id
        )
        async for event in stream:
            action = actions.get(type(event), type(event).__name__)
            await handler.on_row_change(rows_event_from_binlog(event, action))

    async def close(self) -> None:
        for conn in (self._conn, self._ctl_conn):
            if conn is not None:
                conn.close()
        if self._conn is not None or self._ctl_conn is not None:
            logger.info("binlog.closed", addr=self._config.addr)
        self._conn = None
        self._ctl_conn = None
