"""gateflow.observability — per-run trace spans emitted as structured log events."""

from gateflow.observability.tracing import Span, get_current_span, new_trace_id, start_span

__all__ = ["Span", "get_current_span", "new_trace_id", "start_span"]
