"""gateflow.execution — run-level execution control (deadlines)."""

from gateflow.execution.timeout import (
    DeadlineContext,
    TimeoutExpired,
    get_current_deadline,
    get_effective_timeout,
    with_deadline_async,
)

__all__ = [
    "DeadlineContext",
    "TimeoutExpired",
    "get_current_deadline",
    "get_effective_timeout",
    "with_deadline_async",
]
