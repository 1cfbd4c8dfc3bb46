"""Row-change notifications → normalized change events."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from mysql_stream.errors import ColumnMismatchError, UnsupportedActionError
from mysql_stream.sources.base import RowAction, RowsEvent
from mysql_stream.stream.event import ChangeEvent

EmitFunc = Callable[[ChangeEvent], Awaitable[None]]

# (first index, stride) over the row images of a notification.  Updates
# carry (before, after) pairs and only the after-image is emitted.
_ROW_STRIDES: dict[RowAction, tuple[int, int]] = {
    RowAction.INSERT: (0, 1),
    RowAction.DELETE: (0, 1),
    RowAction.UPDATE: (1, 2),
}


class RowEventTranslator:
    """RowChangeHandler that emits one ChangeEvent per logical row.

    Notifications for any schema other than *database* are dropped.
    ``emit`` is awaited for every event, so a slow consumer stalls the
    replication stream that calls us.
    """

    def __init__(self, database: str, emit: EmitFunc) -> None:
        self._database = database
        self._emit = emit

    async def on_row_change(self, event: RowsEvent) -> None:
        if event.table.schema != self._database:
            return

        try:
            action = RowAction(event.action)
        except ValueError:
            raise UnsupportedActionError(event.action) from None
        start, step = _ROW_STRIDES[action]

        columns = event.table.columns
        for row in event.rows[start::step]:
            await self._emit(
                ChangeEvent(
                    table=event.table.name,
                    event=action,
                    data=self._map_columns(event.table.name, columns, row),
                )
            )

    @staticmethod
    def _map_columns(
        table: str, columns: list[str], row: list[Any]
    ) -> dict[str, Any]:
        if len(row) != len(columns):
            msg = (
                f"Row image for table '{table}' has {len(row)} values "
                f"but {len(columns)} columns are known"
            )
            raise ColumnMismatchError(msg)
        return dict(zip(columns, row, strict=True))
