"""Redelivery of negatively acknowledged messages."""

from __future__ import annotations

from collections import deque

import structlog

from mysql_stream.service.input import AckFunc, Input, Message

logger = structlog.get_logger()


class AutoRetryNacks:
    """Wraps an Input so that nacked messages are read again.

    A message acknowledged with an error is queued and handed out by the
    next ``read`` before anything new is pulled from the wrapped input.
    The wrapped ack is only called once the message is finally delivered.
    """

    def __init__(self, inner: Input) -> None:
        self._inner = inner
        self._retries: deque[tuple[Message, AckFunc]] = deque()

    @property
    def inner(self) -> Input:
        return self._inner

    @property
    def pending_retries(self) -> int:
        return len(self._retries)

    async def connect(self) -> None:
        await self._inner.connect()

    async def read(self) -> tuple[Message, AckFunc]:
        if self._retries:
            message, inner_ack = self._retries.popleft()
        else:
            message, inner_ack = await self._inner.read()
        return message, self._wrap_ack(message, inner_ack)

    def _wrap_ack(self, message: Message, inner_ack: AckFunc) -> AckFunc:
        async def ack(err: Exception | None) -> None:
            if err is not None:
                logger.warning(
                    "input.nack_retry",
                    table=message.meta_get("table"),
                    change_event=message.meta_get("event"),
                    error=str(err),
                )
                self._retries.append((message, inner_ack))
                return
            await inner_ack(None)

        return ack

    async def close(self) -> None:
        self._retries.clear()
        await self._inner.close()
