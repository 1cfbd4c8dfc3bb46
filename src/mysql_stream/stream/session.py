"""Replication session — start-position selection and the background task."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import suppress

import structlog

from mysql_stream.errors import ReplicationStreamError
from mysql_stream.sources.base import ReplicationClient, RowChangeHandler

logger = structlog.get_logger()

FailureCallback = Callable[[BaseException], None]


class ReplicationSession:
    """Owns one ReplicationClient and the task that drives it.

    Lifecycle:
        1. Register the row handler and open the client (errors propagate)
        2. In the background, snapshot-then-stream or stream from the
           source's current coordinate
        3. On any exit of the background task, report a
           ReplicationStreamError through *on_failure*
    """

    def __init__(
        self,
        client: ReplicationClient,
        *,
        stream_snapshot: bool,
        on_failure: FailureCallback,
    ) -> None:
        self._client = client
        self._stream_snapshot = stream_snapshot
        self._on_failure = on_failure
        self._task: asyncio.Task[None] | None = None
        self._opened = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def open(self, handler: RowChangeHandler) -> None:
        """Open the client and start replicating in the background."""
        self._client.set_handler(handler)
        await self._client.open()
        self._opened = True
        self._task = asyncio.create_task(self._replicate(), name="binlog-replication")

    async def _replicate(self) -> None:
        try:
            if self._stream_snapshot:
                logger.info("replication.snapshot_starting")
                await self._client.run_from_snapshot()
            else:
                position = await self._client.get_current_position()
                logger.info("replication.starting", position=str(position))
                await self._client.run_from_position(position)
        except Exception as exc:
            logger.error("replication.failed", exc_info=True)
            error = ReplicationStreamError(f"Replication stream failed: {exc}")
            error.__cause__ = exc
            self._on_failure(error)
        else:
            logger.warning("replication.ended")
            self._on_failure(ReplicationStreamError("Replication stream ended"))

    async def close(self) -> None:
        """Stop the background task and release the client.  Idempotent."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        if self._opened:
            self._opened = False
            await self._client.close()
