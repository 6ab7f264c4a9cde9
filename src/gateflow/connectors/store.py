"""Record store — the durable sink a persist step writes one record into.

``put`` is a pure insert keyed by the record's partition key; writing the
same key twice keeps the last write. There is no read path in the workflow.
Backends:

* ``MemoryRecordStore``  — dict-backed; tests and local runs.
* ``SqlRecordStore``     — SQLAlchemy table, any SA-supported database.
* ``DynamoRecordStore``  — aiobotocore ``put_item`` on a DynamoDB table.

The acknowledgement (``StoreAck``) is placed back into the execution
context so the final response can report the persistence outcome.

Every backend is natively async (SQLAlchemy asyncio + aiosqlite, aiobotocore),
so cancelling a run cancels the write itself: the SQL transaction rolls back
unless it has committed, and the DynamoDB request is aborted.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Mapping
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    MetaData,
    Table,
    Text,
    delete,
    func,
    insert,
    make_url,
    select,
)
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from gateflow.core.errors import ConfigError, StoreError, StoreThrottled, StoreUnavailable
from gateflow.core.logging import get_logger
from gateflow.core.settings import GateflowSettings
from gateflow.core.timestamps import utc_now

logger = get_logger(__name__)

Primitive = str | int | float | bool | None

THROTTLING_ERROR_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
    }
)


@dataclass(frozen=True)
class StoreAck:
    """Write acknowledgement returned by every backend."""

    status_code: int
    key: str

    def to_document(self) -> dict[str, Any]:
        return {"status_code": self.status_code, "key": self.key}


@runtime_checkable
class RecordStore(Protocol):
    """Protocol every record store backend implements."""

    async def put(self, record: Mapping[str, Any], key_field: str) -> StoreAck:
        """Write one record; raise StoreUnavailable / StoreThrottled on failure."""
        ...


def validate_record(record: Mapping[str, Any], key_field: str) -> str:
    """Check a record is flat with a string key; return the key.

    Raises:
        StoreError: Nested or non-finite values, or a missing/blank key.
    """
    if key_field not in record:
        raise StoreError(f"Record has no key field {key_field!r}")
    key = record[key_field]
    if not isinstance(key, str) or not key:
        raise StoreError(f"Record key {key_field!r} must be a non-empty string, got {key!r}")
    for name, value in record.items():
        if not isinstance(value, Primitive):
            raise StoreError(
                f"Record field {name!r} must be a primitive value, got {type(value).__name__}"
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise StoreError(f"Record field {name!r} must be a finite number, got {value!r}")
    return key


async def close_store(store: RecordStore | None) -> None:
    """Release a backend's connections, if it holds any."""
    aclose = getattr(store, "aclose", None)
    if aclose is not None:
        await aclose()


# =============================================================================
# In-memory
# =============================================================================


class MemoryRecordStore:
    """Dict-backed store. ``records`` maps key → record."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.put_count = 0

    async def put(self, record: Mapping[str, Any], key_field: str) -> StoreAck:
        key = validate_record(record, key_field)
        self.records[key] = dict(record)
        self.put_count += 1
        return StoreAck(status_code=200, key=key)

    def __len__(self) -> int:
        return len(self.records)


# =============================================================================
# SQL (SQLAlchemy asyncio)
# =============================================================================


def async_database_url(url: str) -> str:
    """Swap a plain ``sqlite://`` URL onto the aiosqlite driver.

    URLs that already name a driver are returned unchanged.
    """
    parsed = make_url(url)
    if parsed.drivername == "sqlite":
        parsed = parsed.set(drivername="sqlite+aiosqlite")
    return parsed.render_as_string(hide_password=False)


def create_store_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the record table.

    In-memory SQLite gets a single shared connection so every ``put``
    sees the same database.
    """
    parsed = make_url(async_database_url(url))
    kwargs: dict[str, Any] = {"echo": echo}
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    return create_async_engine(parsed, **kwargs)


def record_table(table_name: str, metadata: MetaData | None = None) -> Table:
    """``(key TEXT PRIMARY KEY, attributes JSON, created_at TIMESTAMP)``."""
    return Table(
        table_name,
        metadata or MetaData(),
        Column("key", Text, primary_key=True),
        Column("attributes", JSON, nullable=False),
        Column("created_at", DateTime(timezone=True), nullable=False),
    )


class SqlRecordStore:
    """Stores records as ``(key, attributes, created_at)`` rows.

    The delete and insert share one transaction that commits only when
    both succeed; a run cancelled mid-write leaves the table untouched.
    """

    def __init__(self, engine: AsyncEngine | str, table_name: str = "gateflow_records", create_table: bool = True):
        self.engine = create_store_engine(engine) if isinstance(engine, str) else engine
        self.table = record_table(table_name)
        self._table_ready = not create_table
        self._table_lock = asyncio.Lock()

    async def create_table(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(self.table.metadata.create_all)
        self._table_ready = True

    async def _ensure_table(self) -> None:
        if self._table_ready:
            return
        async with self._table_lock:
            if not self._table_ready:
                await self.create_table()

    async def _write(self, conn: AsyncConnection, key: str, record: dict[str, Any]) -> None:
        await conn.execute(delete(self.table).where(self.table.c.key == key))
        await conn.execute(insert(self.table).values(key=key, attributes=record, created_at=utc_now()))

    async def put(self, record: Mapping[str, Any], key_field: str) -> StoreAck:
        key = validate_record(record, key_field)
        try:
            await self._ensure_table()
            async with self.engine.begin() as conn:
                await self._write(conn, key, dict(record))
        except OperationalError as e:
            if "locked" in str(e).lower():
                raise StoreThrottled(f"Database busy: {e.orig}", cause=e) from e
            raise StoreUnavailable(f"Database unavailable: {e.orig}", cause=e) from e
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Database write failed: {e}", cause=e) from e
        return StoreAck(status_code=200, key=key)

    async def get(self, key: str) -> dict[str, Any] | None:
        """Read a record back (diagnostics and tests; the workflow never reads)."""
        await self._ensure_table()
        async with self.engine.connect() as conn:
            row = (await conn.execute(select(self.table.c.attributes).where(self.table.c.key == key))).first()
        return dict(row.attributes) if row is not None else None

    async def count(self) -> int:
        await self._ensure_table()
        async with self.engine.connect() as conn:
            return (await conn.execute(select(func.count()).select_from(self.table))).scalar_one()

    async def aclose(self) -> None:
        await self.engine.dispose()


# =============================================================================
# DynamoDB (aiobotocore)
# =============================================================================


def to_attribute_value(value: Primitive) -> dict[str, Any]:
    """Encode a primitive as a DynamoDB attribute value."""
    if value is None:
        return {"NULL": True}
    if isinstance(value, bool):
        return {"BOOL": value}
    if isinstance(value, int | float):
        return {"N": str(value)}
    return {"S": value}


class DynamoRecordStore:
    """``put_item`` into a DynamoDB table whose partition key is ``key_field``.

    The client is created on first use and kept open until ``aclose``;
    an injected ``client`` is used as-is and never closed here.
    """

    def __init__(
        self,
        table_name: str,
        client: Any = None,
        *,
        region_name: str = "us-east-1",
        endpoint_url: str | None = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
    ):
        self.table_name = table_name
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        self.config = AioConfig(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": 1, "mode": "standard"},
        )
        self._client = client
        self._exit_stack = AsyncExitStack()
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        async with self._client_lock:
            if self._client is None:
                self._client = await self._exit_stack.enter_async_context(
                    get_session().create_client(
                        "dynamodb",
                        region_name=self.region_name,
                        endpoint_url=self.endpoint_url,
                        config=self.config,
                    )
                )
        return self._client

    async def put(self, record: Mapping[str, Any], key_field: str) -> StoreAck:
        key = validate_record(record, key_field)
        item = {name: to_attribute_value(value) for name, value in record.items()}
        try:
            client = await self._get_client()
            response = await client.put_item(TableName=self.table_name, Item=item)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in THROTTLING_ERROR_CODES:
                raise StoreThrottled(f"DynamoDB throttled the write: {code}", cause=e).with_context(
                    table=self.table_name
                ) from e
            raise StoreUnavailable(f"DynamoDB rejected the write: {code}", cause=e).with_context(
                table=self.table_name
            ) from e
        except BotoCoreError as e:
            raise StoreUnavailable(f"DynamoDB unreachable: {e}", cause=e).with_context(
                table=self.table_name
            ) from e

        status = response.get("ResponseMetadata", {}).get("HTTPStatusCode", 200)
        return StoreAck(status_code=status, key=key)

    async def aclose(self) -> None:
        await self._exit_stack.aclose()


# =============================================================================
# Factory
# =============================================================================


def build_store(settings: GateflowSettings) -> RecordStore:
    """Construct the backend selected by ``settings.store_backend``."""
    backend = settings.store_backend
    logger.info("store.configured", backend=backend, table=settings.table_name)
    if backend == "memory":
        return MemoryRecordStore()
    if backend == "sql":
        return SqlRecordStore(settings.database_url, table_name=settings.table_name)
    if backend == "dynamodb":
        return DynamoRecordStore(
            settings.table_name,
            region_name=settings.aws_region,
            endpoint_url=settings.dynamodb_endpoint_url,
        )
    raise ConfigError(f"Unknown store backend: {backend!r}")


__all__ = [
    "DynamoRecordStore",
    "MemoryRecordStore",
    "RecordStore",
    "SqlRecordStore",
    "StoreAck",
    "async_database_url",
    "build_store",
    "close_store",
    "create_store_engine",
    "to_attribute_value",
    "validate_record",
]
