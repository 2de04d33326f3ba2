from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator

import pytest

from datasense_mcp.schema.models import (
    ColumnInfo,
    ForeignKeyInfo,
    SchemaSnapshot,
    TableInfo,
)
from datasense_mcp.services.schema_cache import SchemaCache
from datasense_mcp.services.service_registry import ServiceRegistry


class FakeLLMClient:
    """Scripted language-model client.

    Each call pops the next scripted item: strings are returned, exceptions
    are raised. When the script is exhausted `default` is returned.
    """

    def __init__(
        self,
        responses: list[str | BaseException] | None = None,
        *,
        default: str = "",
        delay: float = 0.0,
    ) -> None:
        self.responses = list(responses or [])
        self.default = default
        self.delay = delay
        self.prompts: list[str] = []
        self.timeouts: list[float | None] = []
        self.closed = False

    async def complete(self, prompt: str, *, timeout: float | None = None) -> str:
        self.prompts.append(prompt)
        self.timeouts.append(timeout)
        if self.delay:
            await asyncio.sleep(self.delay)
        item: str | BaseException = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


class FakeCatalogReader:
    def __init__(
        self,
        snapshot: SchemaSnapshot | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.snapshot = snapshot
        self.error = error
        self.delay = delay
        self.calls = 0

    def read_schema(self) -> SchemaSnapshot:
        self.calls += 1
        if self.delay:
            import time

            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        assert self.snapshot is not None
        return self.snapshot


@pytest.fixture
def users_snapshot() -> SchemaSnapshot:
    return SchemaSnapshot(
        database_name="shop",
        tables=(
            TableInfo(
                name="users",
                schema_name="dbo",
                columns=(
                    ColumnInfo(name="id", data_type="INTEGER", nullable=False, is_primary_key=True),
                    ColumnInfo(name="name", data_type="NVARCHAR", max_length=100),
                    ColumnInfo(name="email", data_type="NVARCHAR", max_length=255),
                ),
            ),
            TableInfo(
                name="orders",
                schema_name="dbo",
                columns=(
                    ColumnInfo(name="id", data_type="INTEGER", nullable=False, is_primary_key=True),
                    ColumnInfo(name="user_id", data_type="INTEGER", nullable=False),
                    ColumnInfo(name="total", data_type="DECIMAL"),
                ),
                foreign_keys=(
                    ForeignKeyInfo(
                        column="user_id", referenced_table="dbo.users", referenced_column="id"
                    ),
                ),
            ),
        ),
    )


@pytest.fixture
def make_llm() -> Callable[..., FakeLLMClient]:
    return FakeLLMClient


@pytest.fixture
def make_reader() -> Callable[..., FakeCatalogReader]:
    return FakeCatalogReader


@pytest.fixture(autouse=True)
def _reset_singletons() -> Iterator[None]:
    yield
    ServiceRegistry.reset_instance()
    SchemaCache.reset_instance()
