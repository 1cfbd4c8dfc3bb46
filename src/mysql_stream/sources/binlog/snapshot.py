"""Initial table snapshot replayed as insert notifications.

Mirrors what mysqldump does for a consistent dump: take a global read
lock, open a consistent-snapshot transaction, record the binlog
coordinate, release the lock, then read every table inside the
transaction.  The returned coordinate is where the live stream resumes.
"""

from __future__ import annotations

from typing import Any

import structlog

from mysql_stream.config.models import Flavor
from mysql_stream.sources.base import (
    BinlogPosition,
    RowAction,
    RowChangeHandler,
    RowsEvent,
    TableSchema,
)
from mysql_stream.sources.binlog.position import read_binlog_position

logger = structlog.get_logger()


def quote_identifier(name: str) -> str:
    """Quote a MySQL identifier with backticks."""
    return "`" + name.replace("`", "``") + "`"


class TableSnapshot:
    """Reads full table contents over a dedicated connection.

    Requires the RELOAD privilege (for FLUSH TABLES WITH READ LOCK).  Rows
    are streamed with an unbuffered cursor, so a consumer that stalls for
    longer than the server's net_write_timeout aborts the snapshot.
    """

    def __init__(
        self,
        conn: Any,
        *,
        database: str,
        tables: list[str],
        flavor: Flavor,
        batch_size: int = 100,
    ) -> None:
        self._conn = conn
        self._database = database
        self._tables = tables
        self._flavor = flavor
        self._batch_size = batch_size

    async def list_tables(self) -> list[str]:
        """Configured tables, or every base table of the database."""
        if self._tables:
            return list(self._tables)
        async with self._conn.cursor() as cursor:
            await cursor.execute(
                "SELECT TABLE_NAME FROM information_schema.TABLES "
                "WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE' "
                "ORDER BY TABLE_NAME",
                (self._database,),
            )
            return [row[0] for row in await cursor.fetchall()]

    async def replay(self, handler: RowChangeHandler) -> BinlogPosition:
        """Emit every row through *handler* and return the resume coordinate."""
        position, tables = await self._begin()
        logger.info(
            "snapshot.started",
            database=self._database,
            tables=tables,
            position=str(position),
        )
        try:
            for table in tables:
                count = await self._replay_table(table, handler)
                logger.info("snapshot.table_done", table=table, rows=count)
        finally:
            async with self._conn.cursor() as cursor:
                await cursor.execute("COMMIT")
        logger.info("snapshot.finished", database=self._database)
        return position

    async def _begin(self) -> tuple[BinlogPosition, list[str]]:
        # Tables are listed while the global read lock blocks DDL
        async with self._conn.cursor() as cursor:
            await cursor.execute(
                "SET SESSION TRANSACTION ISOLATION LEVEL REPEATABLE READ"
            )
            await cursor.execute("FLUSH TABLES WITH READ LOCK")
            try:
                await cursor.execute("START TRANSACTION WITH CONSISTENT SNAPSHOT")
                position = await read_binlog_position(self._conn, self._flavor)
                tables = await self.list_tables()
            finally:
                await cursor.execute("UNLOCK TABLES")
        return position, tables

    async def _replay_table(self, table: str, handler: RowChangeHandler) -> int:
        from asyncmy.cursors import SSCursor

        count = 0
        async with self._conn.cursor(SSCursor) as cursor:
            await cursor.execute(
                f"SELECT * FROM {quote_identifier(self._database)}."  # noqa: S608
                f"{quote_identifier(table)}"
            )
            schema = TableSchema(
                schema=self._database,
                name=table,
                columns=[d[0] for d in cursor.description],
            )
            while True:
                rows = await cursor.fetchmany(self._batch_size)
                if not rows:
                    break
                await handler.on_row_change(
                    RowsEvent(
                        table=schema,
                        action=RowAction.INSERT,
                        rows=[list(row) for row in rows],
                    )
                )
                count += len(rows)
        return count
