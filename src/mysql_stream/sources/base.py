"""Replication client contract.

Defines the raw row-change notification handed to the translator
(RowsEvent) and the two protocols at the seam between this package and
the binlog client: RowChangeHandler (implemented by us, called by the
client) and ReplicationClient (implemented by the client, driven by us).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable


class RowAction(StrEnum):
    """Row mutation kinds carried by the binlog."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class BinlogPosition:
    """A coordinate in the source's binary log."""

    name: str
    pos: int

    def __str__(self) -> str:
        return f"{self.name}:{self.pos}"


@dataclass(slots=True)
class TableSchema:
    """Schema metadata for the table a notification refers to."""

    schema: str
    name: str
    columns: list[str] = field(default_factory=list)  # ordinal order


@dataclass(slots=True)
class RowsEvent:
    """A decoded row-change notification from the replication client.

    ``rows`` holds row images in binlog order.  For updates the images come
    in (before, after) pairs: index 0 and 1 are the first updated row,
    2 and 3 the second, and so on.
    """

    table: TableSchema
    action: str
    rows: list[list[Any]]


@runtime_checkable
class RowChangeHandler(Protocol):
    """Receives every row-change notification from a ReplicationClient.

    Raising aborts the replication stream with that error.
    """

    async def on_row_change(self, event: RowsEvent) -> None:
        """Handle one notification; may suspend to apply backpressure."""
        ...


@runtime_checkable
class ReplicationClient(Protocol):
    """Binlog client driven by the replication session."""

    def set_handler(self, handler: RowChangeHandler) -> None:
        """Register the target for row-change notifications."""
        ...

    async def open(self) -> None:
        """Connect to the source; raise SourceConnectionError on failure."""
        ...

    async def get_current_position(self) -> BinlogPosition:
        """Return the source's current binlog coordinate."""
        ...

    async def run_from_snapshot(self) -> None:
        """Replay a full snapshot, then follow the binlog until closed."""
        ...

    async def run_from_position(self, position: BinlogPosition) -> None:
        """Follow the binlog from *position* until closed."""
        ...

    async def close(self) -> None:
        """Release every connection held by the client."""
        ...
