"""Normalized change event and its wire encoding."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from mysql_stream.service.input import Message
from mysql_stream.sources.base import RowAction


@dataclass(slots=True)
class ChangeEvent:
    """One logical row affected by an insert, update or delete."""

    table: str
    event: RowAction
    data: dict[str, Any]


def encode_data(data: dict[str, Any]) -> bytes:
    """Serialize row data to JSON bytes.

    Values JSON cannot represent natively (Decimal, datetime, ...) are
    rendered with ``str``.
    """
    return json.dumps(data, default=str).encode("utf-8")


def decode_data(payload: bytes) -> dict[str, Any]:
    """Inverse of :func:`encode_data` for JSON-native values."""
    data = json.loads(payload)
    if not isinstance(data, dict):
        msg = f"Expected a JSON object payload, got {type(data).__name__}"
        raise TypeError(msg)
    return data


def to_message(event: ChangeEvent) -> Message:
    """Package a change event as an outgoing message with routing metadata."""
    message = Message(encode_data(event.data))
    message.meta_set("table", event.table)
    message.meta_set("event", event.event.value)
    return message
