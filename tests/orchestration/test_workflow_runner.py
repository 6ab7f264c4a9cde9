"""Tests for WorkflowRunner — sequencing, failure handling, deadlines.

Covers the ip and weather variants end to end against a mocked upstream
and an in-memory store, every terminal error path, the run-level timeout,
and WorkflowResult serialization.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx
import pytest

from gateflow.connectors.store import MemoryRecordStore, SqlRecordStore, StoreAck
from gateflow.core.errors import (
    ConfigError,
    InternalError,
    PathNotFound,
    StoreUnavailable,
    UpstreamError,
    UpstreamTimeout,
    UpstreamUnavailable,
    WorkflowTimeout,
)
from gateflow.orchestration import workflow_runner
from gateflow.orchestration.definitions import get_workflow
from gateflow.orchestration.extractor import ExtractMode
from gateflow.orchestration.step_types import Step
from gateflow.orchestration.workflow import Workflow
from gateflow.orchestration.workflow_runner import (
    StepExecution,
    WorkflowResult,
    WorkflowRunner,
    WorkflowStatus,
)

WEATHER = "Sunny +18°C"
DATE = "Tue, 01 Jan 2024 12:00:00 GMT"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FailingStore:
    """Store whose every write fails."""

    def __init__(self) -> None:
        self.calls = 0

    async def put(self, record: Mapping[str, Any], key_field: str) -> StoreAck:
        self.calls += 1
        raise StoreUnavailable("table is gone")


class SlowStore(MemoryRecordStore):
    """Store that takes longer than any test deadline."""

    async def put(self, record: Mapping[str, Any], key_field: str) -> StoreAck:
        await asyncio.sleep(5)
        return await super().put(record, key_field)


class SlowSqlStore(SqlRecordStore):
    """In-memory SQL store whose transaction stays open past any test deadline."""

    def __init__(self) -> None:
        super().__init__("sqlite://")

    async def _write(self, conn, key, record):
        await super()._write(conn, key, record)
        await asyncio.sleep(0.4)


# ---------------------------------------------------------------------------
# WorkflowStatus enum
# ---------------------------------------------------------------------------


class TestWorkflowStatus:
    def test_values(self):
        assert WorkflowStatus.RUNNING.value == "running"
        assert WorkflowStatus.COMPLETED.value == "completed"
        assert WorkflowStatus.FAILED.value == "failed"


# ---------------------------------------------------------------------------
# Happy paths
# ---------------------------------------------------------------------------


class TestMinimalVariant:
    @pytest.mark.asyncio
    async def test_returns_body(self, ip_fetcher, memory_store):
        runner = WorkflowRunner(fetcher=ip_fetcher, store=memory_store)
        result = await runner.execute(get_workflow("ip"))

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == "203.0.113.7"
        assert result.unwrap() == "203.0.113.7"
        assert memory_store.put_count == 0

    @pytest.mark.asyncio
    async def test_runs_without_a_store(self, ip_fetcher):
        result = await WorkflowRunner(fetcher=ip_fetcher).execute(get_workflow("ip"))
        assert result.succeeded


class TestWeatherVariant:
    @pytest.mark.asyncio
    async def test_full_pipeline(self, weather_fetcher, memory_store, started_at):
        runner = WorkflowRunner(fetcher=weather_fetcher, store=memory_store)
        result = await runner.execute(get_workflow("weather"), started_at=started_at)

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == {"weather": WEATHER, "event_date": DATE, "ddb_status": 200}
        assert memory_store.records == {DATE: {"weather": WEATHER, "timest": DATE}}
        assert result.completed_steps == ["fetch", "filter", "persist", "shape"]

    @pytest.mark.asyncio
    async def test_date_header_missing_falls_back_to_start_time(self, make_fetcher, memory_store, started_at):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text=WEATHER))
        runner = WorkflowRunner(fetcher=fetcher, store=memory_store)
        result = await runner.execute(get_workflow("weather"), started_at=started_at)

        assert result.output["event_date"] == "2024-03-05T08:09:10.123Z"
        assert "2024-03-05T08:09:10.123Z" in memory_store.records

    @pytest.mark.asyncio
    async def test_step_snapshots(self, weather_fetcher, memory_store, started_at):
        runner = WorkflowRunner(fetcher=weather_fetcher, store=memory_store)
        result = await runner.execute(get_workflow("weather"), started_at=started_at)

        fetch, transform, persist, shape = result.step_executions
        assert fetch.input == {}
        assert fetch.output["http"]["headers"]["Date"] == [DATE]
        assert transform.output == {"weather": WEATHER, "event_date": DATE}
        assert persist.output == {"ddb": {"status_code": 200, "key": DATE}}
        assert shape.input["ddb"]["status_code"] == 200
        assert all(s.duration_seconds is not None for s in result.step_executions)

    @pytest.mark.asyncio
    async def test_final_context_replaced_by_shape(self, weather_fetcher, memory_store):
        result = await WorkflowRunner(weather_fetcher, memory_store).execute(get_workflow("weather"))
        assert set(result.context.document) == {"weather", "event_date", "ddb_status"}

    @pytest.mark.asyncio
    async def test_ip_log_variant(self, ip_fetcher, memory_store, started_at):
        result = await WorkflowRunner(ip_fetcher, memory_store).execute(get_workflow("ip-log"), started_at=started_at)
        assert result.output == {"ip": "203.0.113.7", "timest": "2024-03-05T08:09:10.123Z", "ddb_status": 200}


class TestExtraction:
    @pytest.mark.asyncio
    async def test_transform_and_shape_use_extract(self, weather_fetcher, memory_store, monkeypatch):
        modes: list[ExtractMode] = []
        real_extract = workflow_runner.extract

        def recording_extract(context, mapping, mode=ExtractMode.FILTER):
            modes.append(ExtractMode(mode))
            return real_extract(context, mapping, mode)

        monkeypatch.setattr(workflow_runner, "extract", recording_extract)
        result = await WorkflowRunner(weather_fetcher, memory_store).execute(get_workflow("weather"))

        assert result.succeeded
        assert modes == [ExtractMode.FILTER, ExtractMode.FINAL]
        assert set(result.context.document) == {"weather", "event_date", "ddb_status"}


class TestIsolation:
    @pytest.mark.asyncio
    async def test_runs_do_not_share_context(self, weather_fetcher, memory_store):
        runner = WorkflowRunner(weather_fetcher, memory_store)
        first, second = await asyncio.gather(
            runner.execute(get_workflow("weather"), run_id="a"),
            runner.execute(get_workflow("weather"), run_id="b"),
        )
        assert first.run_id == "a" and second.run_id == "b"
        assert first.context is not second.context
        assert first.trace_id != second.trace_id
        assert first.output == second.output

    @pytest.mark.asyncio
    async def test_passthrough_query(self, make_fetcher):
        seen: list[httpx.URL] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, json={"ip": "203.0.113.7"})

        wf = Workflow(
            name="json-ip",
            steps=[Step.fetch("fetch", "https://api.test/", passthrough_query=True)],
            output_path="$.http.body.ip",
        )
        result = await WorkflowRunner(make_fetcher(handler)).execute(wf, trigger={"query": {"format": "json"}})
        assert result.output == "203.0.113.7"
        assert seen[0].params["format"] == "json"

    @pytest.mark.asyncio
    async def test_query_not_forwarded_by_default(self, make_fetcher):
        seen: list[httpx.URL] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, text="203.0.113.7")

        await WorkflowRunner(make_fetcher(handler)).execute(get_workflow("ip"), trigger={"query": {"x": "1"}})
        assert "x" not in seen[0].params


# ---------------------------------------------------------------------------
# Failure paths
# ---------------------------------------------------------------------------


class TestFetchFailures:
    @pytest.mark.asyncio
    async def test_upstream_error_status(self, make_fetcher, memory_store):
        fetcher = make_fetcher(lambda request: httpx.Response(503, text="busy"))
        result = await WorkflowRunner(fetcher, memory_store).execute(get_workflow("weather"))

        assert result.status == WorkflowStatus.FAILED
        assert isinstance(result.error, UpstreamError)
        assert result.error.status_code == 503
        assert result.error_step == "fetch"
        assert result.error.context.step == "fetch"
        assert result.error.context.workflow == "weather"
        assert result.output is None
        assert memory_store.put_count == 0

    @pytest.mark.asyncio
    async def test_upstream_unreachable(self, make_fetcher, memory_store):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await WorkflowRunner(make_fetcher(handler), memory_store).execute(get_workflow("weather"))
        assert isinstance(result.error, UpstreamUnavailable)
        assert result.failed_steps == ["fetch"]
        assert memory_store.put_count == 0

    @pytest.mark.asyncio
    async def test_upstream_timeout_never_persists(self, make_fetcher, memory_store):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        result = await WorkflowRunner(make_fetcher(handler), memory_store).execute(get_workflow("weather"))
        assert isinstance(result.error, UpstreamTimeout | WorkflowTimeout)
        assert memory_store.put_count == 0
        with pytest.raises((UpstreamTimeout, WorkflowTimeout)):
            result.unwrap()


class TestShapingFailures:
    @pytest.mark.asyncio
    async def test_missing_field_fails_before_persist(self, make_fetcher, memory_store):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={"other": 1}))
        wf = Workflow(
            name="json",
            steps=[
                Step.fetch("fetch", "https://api.test/"),
                Step.transform("filter", {"temp": "$.http.body.current.temp"}),
                Step.persist("persist", {"temp": "$.temp", "timest": "$$.Execution.StartTime"}),
            ],
        )
        result = await WorkflowRunner(fetcher, memory_store).execute(wf)

        assert isinstance(result.error, PathNotFound)
        assert result.error_step == "filter"
        assert result.completed_steps == ["fetch"]
        assert memory_store.put_count == 0

    @pytest.mark.asyncio
    async def test_output_path_missing(self, ip_fetcher):
        wf = Workflow(name="w", steps=[Step.fetch("fetch", "https://api.test/")], output_path="$.nope")
        result = await WorkflowRunner(ip_fetcher).execute(wf)
        assert result.status == WorkflowStatus.FAILED
        assert isinstance(result.error, PathNotFound)


class TestPersistFailures:
    @pytest.mark.asyncio
    async def test_store_failure_is_terminal(self, weather_fetcher):
        store = FailingStore()
        result = await WorkflowRunner(weather_fetcher, store).execute(get_workflow("weather"))

        assert result.status == WorkflowStatus.FAILED
        assert isinstance(result.error, StoreUnavailable)
        assert result.error_step == "persist"
        assert result.output is None
        assert "shape" not in [s.step_name for s in result.step_executions]
        assert store.calls == 1

    @pytest.mark.asyncio
    async def test_missing_store_is_config_error(self, weather_fetcher):
        result = await WorkflowRunner(weather_fetcher).execute(get_workflow("weather"))
        assert isinstance(result.error, ConfigError)
        assert result.error_step == "persist"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_internal_error(self, weather_fetcher):
        class BrokenStore:
            async def put(self, record, key_field):
                raise RuntimeError("bug")

        result = await WorkflowRunner(weather_fetcher, BrokenStore()).execute(get_workflow("weather"))
        assert isinstance(result.error, InternalError)
        assert isinstance(result.error.cause, RuntimeError)


class TestDeadline:
    @pytest.mark.asyncio
    async def test_slow_step_times_out(self, weather_fetcher):
        store = SlowStore()
        wf = get_workflow("weather").with_overrides(timeout_seconds=0.1)
        result = await WorkflowRunner(weather_fetcher, store).execute(wf)

        assert result.status == WorkflowStatus.FAILED
        assert isinstance(result.error, WorkflowTimeout)
        assert result.error_step == "persist"
        assert result.output is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_timed_out_sql_write_leaves_no_record(self, weather_fetcher):
        store = SlowSqlStore()
        wf = get_workflow("weather").with_overrides(timeout_seconds=0.1)
        result = await WorkflowRunner(weather_fetcher, store).execute(wf)

        assert isinstance(result.error, WorkflowTimeout)
        assert result.error_step == "persist"
        await asyncio.sleep(0.6)
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_slow_upstream_times_out(self, make_fetcher):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, text="late")

        wf = get_workflow("ip").with_overrides(timeout_seconds=0.1)
        result = await WorkflowRunner(make_fetcher(handler)).execute(wf)
        assert isinstance(result.error, WorkflowTimeout)
        assert result.error_step == "fetch"


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerialization:
    @pytest.mark.asyncio
    async def test_result_to_dict(self, weather_fetcher, memory_store):
        result = await WorkflowRunner(weather_fetcher, memory_store).execute(get_workflow("weather"), run_id="r-1")
        data = result.to_dict()
        assert data["run_id"] == "r-1"
        assert data["status"] == "completed"
        assert data["trace_id"] == result.trace_id
        assert len(data["step_executions"]) == 4
        assert data["error"] is None

    @pytest.mark.asyncio
    async def test_failed_result_to_dict(self, make_fetcher):
        fetcher = make_fetcher(lambda request: httpx.Response(404))
        data = (await WorkflowRunner(fetcher).execute(get_workflow("ip"))).to_dict()
        assert data["status"] == "failed"
        assert data["error"]["error_type"] == "UpstreamError"
        assert data["failed_steps"] == ["fetch"]

    def test_step_execution_duration(self):
        assert StepExecution(step_name="s", step_type="fetch").duration_seconds is None

    def test_unwrap_success(self, started_at):
        from gateflow.orchestration.workflow_context import WorkflowContext

        result = WorkflowResult(
            workflow_name="ip",
            run_id="r",
            status=WorkflowStatus.COMPLETED,
            context=WorkflowContext.create("ip"),
            started_at=started_at,
            output="x",
        )
        assert result.unwrap() == "x"
