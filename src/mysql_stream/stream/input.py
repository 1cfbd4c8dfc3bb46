"""The ``mysql_stream`` input — binlog row changes as messages."""

from __future__ import annotations

from collections.abc import Callable

import structlog

from mysql_stream.config.models import MysqlStreamConfig
from mysql_stream.errors import InputClosedError
from mysql_stream.service.input import AckFunc, Input, Message
from mysql_stream.service.registry import InputRegistry
from mysql_stream.service.retry import AutoRetryNacks
from mysql_stream.sources.base import ReplicationClient
from mysql_stream.stream.channel import HandoffChannel
from mysql_stream.stream.event import ChangeEvent, to_message
from mysql_stream.stream.session import ReplicationSession
from mysql_stream.stream.translator import RowEventTranslator

logger = structlog.get_logger()

ClientFactory = Callable[[MysqlStreamConfig], ReplicationClient]


def _default_client_factory(config: MysqlStreamConfig) -> ReplicationClient:
    from mysql_stream.sources.binlog.client import AsyncmyReplicationClient

    return AsyncmyReplicationClient(config)


async def _noop_ack(err: Exception | None) -> None:
    """Delivery outcome is not tracked here; redelivery is the host's concern."""
    return None


class MysqlStreamInput:
    """Input that reads one change event per ``read`` call.

    Events flow replication task → translator → single-slot channel →
    ``read``.  A background failure is raised by the next ``read``; after
    that (or after ``close``) ``connect`` starts over from the source's
    current coordinate.
    """

    def __init__(
        self,
        config: MysqlStreamConfig,
        *,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or _default_client_factory
        self._channel: HandoffChannel[ChangeEvent] = HandoffChannel()
        self._session: ReplicationSession | None = None

    @property
    def config(self) -> MysqlStreamConfig:
        return self._config

    @property
    def connected(self) -> bool:
        return self._session is not None and not self._channel.closed

    async def connect(self) -> None:
        if self.connected:
            return
        await self._release_session()
        if self._channel.closed:
            self._channel = HandoffChannel()

        channel = self._channel
        translator = RowEventTranslator(self._config.database, channel.put)
        session = ReplicationSession(
            self._client_factory(self._config),
            stream_snapshot=self._config.stream_snapshot,
            on_failure=channel.close,
        )
        await session.open(translator)
        self._session = session
        logger.info(
            "mysql_stream.connected",
            addr=self._config.addr,
            database=self._config.database,
            snapshot=self._config.stream_snapshot,
        )

    async def read(self) -> tuple[Message, AckFunc]:
        event = await self._channel.get()
        return to_message(event), _noop_ack

    async def close(self) -> None:
        await self._release_session()
        self._channel.close(InputClosedError("Input closed"))

    async def _release_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()
            logger.info("mysql_stream.closed", addr=self._config.addr)


def new_mysql_stream_input(config: MysqlStreamConfig) -> Input:
    """Construct the input the way the registry exposes it: nacks are retried."""
    return AutoRetryNacks(MysqlStreamInput(config))


def register(registry: InputRegistry) -> None:
    registry.register(
        "mysql_stream",
        MysqlStreamConfig,
        new_mysql_stream_input,
        summary="Creates an input that generates a MySQL CDC stream",
    )
