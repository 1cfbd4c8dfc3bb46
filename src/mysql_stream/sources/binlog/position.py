"""Binlog coordinate lookup."""

from __future__ import annotations

from typing import Any

import structlog

from mysql_stream.config.models import Flavor
from mysql_stream.errors import ReplicationError
from mysql_stream.sources.base import BinlogPosition

logger = structlog.get_logger()

LEGACY_POSITION_QUERY = "SHOW MASTER STATUS"

_POSITION_QUERIES: dict[Flavor, str] = {
    Flavor.MYSQL: "SHOW BINARY LOG STATUS",
    Flavor.MARIADB: "SHOW BINLOG STATUS",
}


async def read_binlog_position(conn: Any, flavor: Flavor) -> BinlogPosition:
    """Return the source's current binlog file and offset.

    Older servers reject the current status statement as a syntax error
    (MySQL before 8.2, MariaDB before 10.5.2); ``SHOW MASTER STATUS`` is
    issued instead.
    """
    from asyncmy.errors import ProgrammingError

    async with conn.cursor() as cursor:
        try:
            await cursor.execute(_POSITION_QUERIES[flavor])
        except ProgrammingError:
            logger.debug("binlog.position_query_fallback", flavor=flavor.value)
            await cursor.execute(LEGACY_POSITION_QUERY)
        row = await cursor.fetchone()
    if not row:
        msg = "Binary logging is disabled on the source (no binlog status returned)"
        raise ReplicationError(msg)
    return BinlogPosition(name=row[0], pos=int(row[1]))
