"""
Shared pytest fixtures for gateflow tests.

This module provides:
- Registry and settings-cache reset for test isolation
- A fixed invocation start time
- Fetchers backed by ``httpx.MockTransport`` so no test touches the network
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import pytest

from gateflow.connectors.fetcher import ExternalFetcher
from gateflow.connectors.store import MemoryRecordStore
from gateflow.core.settings import get_settings
from gateflow.orchestration.definitions import reset_registry

WEATHER_BODY = "Sunny +18°C"
DATE_HEADER = "Tue, 01 Jan 2024 12:00:00 GMT"
IP_BODY = "203.0.113.7"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _isolate_registry_and_settings(monkeypatch):
    """Every test sees the built-in variants and fresh, env-free settings."""
    for var in ("GATEFLOW_WORKFLOW", "GATEFLOW_UPSTREAM_URL", "GATEFLOW_STORE_BACKEND", "GATEFLOW_TIMEOUT_SECONDS"):
        monkeypatch.delenv(var, raising=False)
    reset_registry()
    get_settings.cache_clear()
    yield
    reset_registry()
    get_settings.cache_clear()


@pytest.fixture
def started_at() -> datetime:
    """Invocation start time; ``$$.Execution.StartTime`` is 2024-03-05T08:09:10.123Z."""
    return datetime(2024, 3, 5, 8, 9, 10, 123456, tzinfo=UTC)


@pytest.fixture
def memory_store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def make_fetcher() -> Callable[[Handler], ExternalFetcher]:
    """Build an ExternalFetcher whose upstream is a plain function."""

    def _make(handler: Handler) -> ExternalFetcher:
        return ExternalFetcher(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def weather_fetcher(make_fetcher) -> ExternalFetcher:
    """Upstream answering like wttr.in: one text line plus a Date header."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            text=WEATHER_BODY,
            headers={"Content-Type": "text/plain; charset=utf-8", "Date": DATE_HEADER},
        )

    return make_fetcher(handler)


@pytest.fixture
def ip_fetcher(make_fetcher) -> ExternalFetcher:
    """Upstream answering like ipify: the bare address as text."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=IP_BODY, headers={"Content-Type": "text/plain"})

    return make_fetcher(handler)
