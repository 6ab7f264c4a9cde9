"""
Lightweight trace spans for workflow runs.

Each run opens a root span; each step opens a child span. Spans are
emitted as structlog events (``span.end``) carrying ``trace_id``,
``span_id``, ``parent_span_id``, ``duration_ms`` and ``status`` so a log
pipeline can rebuild the trace. The current span lives in a ContextVar,
so nesting follows the awaiting task.

Design:
- Start logs at DEBUG, end logs at INFO (with duration)
- Errors recorded on the span with their gateflow error code
- Timer overhead is ~1μs (time.perf_counter)

Usage:
    with start_span("workflow.run", workflow="weather") as root:
        with start_span("step.fetch") as child:
            child.set_attribute("http.status_code", 200)
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from gateflow.core.logging import get_logger

logger = get_logger(__name__)

_current_span: ContextVar[Span | None] = ContextVar("gateflow_span", default=None)


def new_trace_id() -> str:
    """Generate a 32-hex-char trace id."""
    return uuid.uuid4().hex


def _new_span_id() -> str:
    return uuid.uuid4().hex[:16]


@dataclass
class Span:
    """One timed unit of work within a trace."""

    name: str
    trace_id: str
    span_id: str = field(default_factory=_new_span_id)
    parent_span_id: str | None = None
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    status: str = "ok"  # ok, error
    error_code: str | None = None

    def end(self) -> Span:
        """Record end time."""
        if self.ended_at is None:
            self.ended_at = time.perf_counter()
        return self

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds (running spans measure up to now)."""
        end = self.ended_at if self.ended_at is not None else time.perf_counter()
        return (end - self.started_at) * 1000

    def set_attribute(self, key: str, value: Any) -> Span:
        self.attributes[key] = value
        return self

    def record_error(self, error: BaseException) -> Span:
        """Mark the span failed with the error's code (or class name)."""
        self.status = "error"
        self.error_code = getattr(error, "code", type(error).__name__)
        return self

    def to_log_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "span": self.name,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "duration_ms": round(self.duration_ms, 2),
            "status": self.status,
        }
        if self.parent_span_id:
            result["parent_span_id"] = self.parent_span_id
        if self.error_code:
            result["error_code"] = self.error_code
        result.update(self.attributes)
        return result


def get_current_span() -> Span | None:
    """Get the innermost open span for this task, if any."""
    return _current_span.get()


@contextmanager
def start_span(name: str, trace_id: str | None = None, **attributes: Any) -> Iterator[Span]:
    """
    Open a span, make it current, and log it when the block exits.

    A span opened inside another inherits its trace id and records it as
    parent. Exceptions escaping the block mark the span as failed and are
    re-raised unchanged.
    """
    parent = _current_span.get()
    span = Span(
        name=name,
        trace_id=trace_id or (parent.trace_id if parent else new_trace_id()),
        parent_span_id=parent.span_id if parent else None,
        attributes=dict(attributes),
    )
    token = _current_span.set(span)
    logger.debug("span.start", span=name, trace_id=span.trace_id, span_id=span.span_id)
    try:
        yield span
    except BaseException as e:
        span.record_error(e)
        raise
    finally:
        _current_span.reset(token)
        span.end()
        logger.info("span.end", **span.to_log_dict())


__all__ = ["Span", "get_current_span", "new_trace_id", "start_span"]
