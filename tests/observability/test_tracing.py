"""Tests for trace spans."""

import pytest

from gateflow.core.errors import UpstreamTimeout
from gateflow.observability.tracing import get_current_span, new_trace_id, start_span


class TestStartSpan:
    def test_root_span_gets_new_trace(self):
        with start_span("workflow.run", workflow="ip") as span:
            assert get_current_span() is span
            assert len(span.trace_id) == 32
            assert span.parent_span_id is None
            assert span.attributes == {"workflow": "ip"}
        assert get_current_span() is None
        assert span.ended_at is not None
        assert span.duration_ms >= 0

    def test_child_inherits_trace_and_parent(self):
        with start_span("workflow.run") as root:
            with start_span("step.fetch") as child:
                assert child.trace_id == root.trace_id
                assert child.parent_span_id == root.span_id
            assert get_current_span() is root

    def test_explicit_trace_id(self):
        trace_id = new_trace_id()
        with start_span("workflow.run", trace_id=trace_id) as span:
            assert span.trace_id == trace_id

    def test_escaping_error_marks_span(self):
        with pytest.raises(UpstreamTimeout):
            with start_span("step.fetch") as span:
                raise UpstreamTimeout()
        assert span.status == "error"
        assert span.error_code == "UpstreamTimeout"

    def test_to_log_dict(self):
        with start_span("workflow.run") as root:
            with start_span("step.shape", step="shape") as child:
                pass
        data = child.to_log_dict()
        assert data["span"] == "step.shape"
        assert data["parent_span_id"] == root.span_id
        assert data["status"] == "ok"
        assert data["step"] == "shape"
        assert "duration_ms" in data
