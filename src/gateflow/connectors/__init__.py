"""gateflow.connectors — the two external collaborators a run talks to.

- ``ExternalFetcher``: the single outbound HTTP GET (httpx)
- Record stores: in-memory, SQL (SQLAlchemy asyncio) and DynamoDB (aiobotocore) sinks
"""

from gateflow.connectors.fetcher import ExternalFetcher, FetchedResponse, FetchRequest
from gateflow.connectors.store import (
    DynamoRecordStore,
    MemoryRecordStore,
    RecordStore,
    SqlRecordStore,
    StoreAck,
    build_store,
    close_store,
)

__all__ = [
    "DynamoRecordStore",
    "ExternalFetcher",
    "FetchRequest",
    "FetchedResponse",
    "MemoryRecordStore",
    "RecordStore",
    "SqlRecordStore",
    "StoreAck",
    "build_store",
    "close_store",
]
