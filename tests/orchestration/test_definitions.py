"""Tests for the built-in workflow variants and the registry."""

import pytest

from gateflow.core.settings import GateflowSettings
from gateflow.orchestration.definitions import (
    IPIFY_URL,
    WTTR_URL,
    WorkflowNotFoundError,
    get_workflow,
    list_workflows,
    register_workflow,
    workflow_exists,
    workflow_from_settings,
)
from gateflow.orchestration.step_types import Step, StepType
from gateflow.orchestration.workflow import Workflow


class TestVariants:
    def test_registered(self):
        assert list_workflows() == ["ip", "ip-log", "weather"]

    def test_ip_is_fetch_only(self):
        wf = get_workflow("ip")
        assert [s.step_type for s in wf.steps] == [StepType.FETCH]
        assert wf.fetch_step.url == IPIFY_URL
        assert wf.output_path == "$.http.body"
        assert not wf.persists

    def test_ip_log_persists_start_time(self):
        wf = get_workflow("ip-log")
        persist = wf.get_step("persist")
        assert persist.mapping["timest"] == "$$.Execution.StartTime"
        assert wf.steps[-1].step_type == StepType.SHAPE

    def test_weather_pipeline(self):
        wf = get_workflow("weather")
        assert [s.step_type for s in wf.steps] == [
            StepType.FETCH,
            StepType.TRANSFORM,
            StepType.PERSIST,
            StepType.SHAPE,
        ]
        assert wf.fetch_step.url == WTTR_URL
        assert wf.get_step("filter").mapping["event_date"] == ("$.http.headers.Date[0]", "$$.Execution.StartTime")
        assert dict(wf.get_step("persist").mapping) == {"weather": "$.weather", "timest": "$.event_date"}


class TestRegistry:
    def test_unknown(self):
        with pytest.raises(WorkflowNotFoundError) as exc_info:
            get_workflow("nope")
        assert "weather" in exc_info.value.message

    def test_register_duplicate(self):
        with pytest.raises(ValueError):
            register_workflow(get_workflow("ip"))

    def test_register_factory(self):
        @register_workflow
        def custom():
            return Workflow(name="custom", steps=[Step.fetch("fetch", "https://x.test")])

        assert workflow_exists("custom")
        assert custom.name == "custom"

    def test_register_rejects_non_workflow(self):
        with pytest.raises(TypeError):
            register_workflow(lambda: "not a workflow")


class TestFromSettings:
    def test_applies_overrides(self):
        settings = GateflowSettings(
            _env_file=None,
            workflow="weather",
            upstream_url="https://wttr.example/?format=3",
            timeout_seconds=20,
            fetch_timeout_seconds=3,
        )
        wf = workflow_from_settings(settings)
        assert wf.fetch_step.url == "https://wttr.example/?format=3"
        assert wf.fetch_step.timeout_seconds == 3
        assert wf.timeout_seconds == 20

    def test_defaults_unchanged(self):
        wf = workflow_from_settings(GateflowSettings(_env_file=None, workflow="ip"))
        assert wf == get_workflow("ip")
