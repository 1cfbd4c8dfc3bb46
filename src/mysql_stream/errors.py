"""Exception hierarchy for the MySQL change stream."""

from __future__ import annotations


class StreamError(Exception):
    """Base class for every error raised by mysql_stream."""


class SourceConnectionError(StreamError):
    """The source database could not be reached or refused the login."""


class ReplicationError(StreamError):
    """The source answered but cannot serve a replication stream."""


class ReplicationStreamError(StreamError):
    """The background replication task stopped; raised by the next read."""


class UnsupportedActionError(StreamError):
    """A row-change notification carried a mutation kind we cannot translate."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Unsupported rows action: {action!r}")
        self.action = action


class ColumnMismatchError(StreamError):
    """A row image does not line up with the table's column list."""


class ChannelClosedError(StreamError):
    """The event channel was closed."""


class InputClosedError(ChannelClosedError):
    """The input was closed while a read was pending."""
