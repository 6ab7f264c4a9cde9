"""Tests for filter / final field extraction."""

import pytest

from gateflow.core.errors import InvalidPathError, PathNotFound
from gateflow.orchestration.extractor import (
    ExtractMode,
    describe_mapping,
    extract,
    extract_record,
    mapping_from_dict,
    validate_mapping,
)
from gateflow.orchestration.workflow_context import WorkflowContext


@pytest.fixture
def fetched(started_at) -> WorkflowContext:
    return WorkflowContext.create("weather", started_at=started_at).with_updates(
        {
            "http": {
                "status_code": 200,
                "body": "Sunny +18°C",
                "headers": {"Date": ["Tue, 01 Jan 2024 12:00:00 GMT"]},
            }
        }
    )


class TestExtract:
    def test_filter_merges(self, fetched):
        ctx = extract(fetched, {"weather": "$.http.body"}, ExtractMode.FILTER)
        assert ctx.get("weather") == "Sunny +18°C"
        assert ctx.has("http")

    def test_final_replaces(self, fetched):
        ctx = extract(fetched, {"weather": "$.http.body", "status": "$.http.status_code"}, "final")
        assert ctx.document == {"weather": "Sunny +18°C", "status": 200}

    def test_fallback_to_start_time(self, started_at):
        ctx = WorkflowContext.create("weather", started_at=started_at).with_updates(
            {"http": {"body": "Rain", "headers": {}}}
        )
        out = extract(ctx, {"event_date": ("$.http.headers.Date[0]", "$$.Execution.StartTime")})
        assert out.get("event_date") == "2024-03-05T08:09:10.123Z"

    def test_missing_source_is_fatal(self, fetched):
        with pytest.raises(PathNotFound):
            extract(fetched, {"weather": "$.http.json.weather"})

    def test_input_context_untouched(self, fetched):
        before = dict(fetched.document)
        extract(fetched, {"weather": "$.http.body"})
        assert fetched.document == before


class TestExtractRecord:
    def test_pure_function(self):
        record = extract_record({"a": {"b": 1}}, {"x": "$.a.b", "y": "$$.Run"}, {"Run": "r"})
        assert record == {"x": 1, "y": "r"}

    def test_same_input_same_output(self):
        doc = {"a": 1}
        assert extract_record(doc, {"x": "$.a"}) == extract_record(doc, {"x": "$.a"})


class TestValidateMapping:
    def test_empty(self):
        with pytest.raises(ValueError):
            validate_mapping({})

    def test_bad_path(self):
        with pytest.raises(InvalidPathError):
            validate_mapping({"x": "http.body"})

    def test_empty_fallback(self):
        with pytest.raises(ValueError):
            validate_mapping({"x": ()})


def test_describe_round_trip():
    mapping = {"a": "$.x", "b": ("$.y", "$$.z")}
    described = describe_mapping(mapping)
    assert described == {"a": "$.x", "b": ["$.y", "$$.z"]}
    assert mapping_from_dict(described) == mapping
