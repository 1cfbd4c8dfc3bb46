"""Host-side input contract: messages, acknowledgements and the Input protocol."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

# Called by the host once a message is delivered (None) or failed (the error).
AckFunc = Callable[[Exception | None], Awaitable[None]]


@dataclass(slots=True)
class Message:
    """An encoded payload plus string metadata attached out-of-band."""

    payload: bytes
    metadata: dict[str, str] = field(default_factory=dict)

    def meta_set(self, key: str, value: str) -> None:
        self.metadata[key] = value

    def meta_get(self, key: str) -> str | None:
        return self.metadata.get(key)


@runtime_checkable
class Input(Protocol):
    """Protocol that every pluggable input must satisfy.

    ``read`` suspends until a message is available; cancelling the awaiting
    task raises ``asyncio.CancelledError``.
    """

    async def connect(self) -> None:
        """Establish the upstream connection; raise on failure."""
        ...

    async def read(self) -> tuple[Message, AckFunc]:
        """Return the next message and its acknowledgement callback."""
        ...

    async def close(self) -> None:
        """Release upstream resources.  Safe to call more than once."""
        ...
