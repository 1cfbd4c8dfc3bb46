"""Protocol conformance tests — verify implementations satisfy their protocols."""

from __future__ import annotations

from mysql_stream.config.models import MysqlStreamConfig
from mysql_stream.service.input import Input
from mysql_stream.service.registry import default_registry
from mysql_stream.service.retry import AutoRetryNacks
from mysql_stream.sources.base import ReplicationClient, RowChangeHandler
from mysql_stream.sources.binlog.client import AsyncmyReplicationClient
from mysql_stream.stream.input import MysqlStreamInput
from mysql_stream.stream.translator import RowEventTranslator

CONFIG = MysqlStreamConfig(
    addr="localhost", database="shop", user="cdc_user", password="secret"
)


async def _discard(event) -> None:
    return None


class TestProtocolConformance:
    def test_asyncmy_client_satisfies_replication_client(self):
        assert isinstance(AsyncmyReplicationClient(CONFIG), ReplicationClient)

    def test_translator_satisfies_row_change_handler(self):
        assert isinstance(RowEventTranslator("shop", _discard), RowChangeHandler)

    def test_mysql_stream_input_satisfies_input(self):
        assert isinstance(MysqlStreamInput(CONFIG), Input)

    def test_retry_wrapper_satisfies_input(self):
        assert isinstance(AutoRetryNacks(MysqlStreamInput(CONFIG)), Input)

    def test_registry_builds_inputs(self):
        built = default_registry().build(
            "mysql_stream", CONFIG.model_dump(mode="json") | {"password": "secret"}
        )
        assert isinstance(built, Input)
