"""Deadline enforcement for workflow runs.

Every run is bounded by one overall timeout. ``with_deadline_async`` wraps
the step loop in ``asyncio.timeout`` so that expiry cancels whatever step is
awaiting (the fetch or the store write) and surfaces as ``TimeoutExpired``.

Manifesto:
    Operations without timeouts are a reliability anti-pattern:
    - **Resource exhaustion:** Long-running runs hold connections open
    - **Cascading failures:** Slow upstreams hang inbound callers
    - **Poor user experience:** Callers don't get timely feedback

Architecture:
    ::

        async with with_deadline_async(60.0, operation="weather") as deadline:
            await step_1()          # cancelled if the deadline fires
            deadline.check()        # raises if time ran out between steps
            await step_2()

        ┌────────────────────────────────────────────────────────────┐
        │ asyncio.timeout(effective)                                 │
        │  - Cancels the awaiting task on expiry                     │
        │  - Cancellation propagates into httpx / to_thread awaits   │
        └────────────────────────────────────────────────────────────┘

    The deadline stack lives in a ``ContextVar`` so concurrent runs on one
    event loop each see only their own deadline. Nested deadlines never
    extend an outer one.

Tags:
    timeout, deadline, resilience, execution, gateflow

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field


class TimeoutExpired(TimeoutError):
    """Raised when an operation exceeds its deadline.

    Attributes:
        timeout: The timeout value that was exceeded
        elapsed: How long the operation ran before being interrupted
        operation: Name/description of the operation
    """

    def __init__(
        self,
        timeout: float,
        elapsed: float | None = None,
        operation: str = "operation",
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation

        msg = f"Operation '{operation}' timed out after {timeout}s"

        if elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"

        super().__init__(msg)


@dataclass
class DeadlineContext:
    """Tracks deadline state for one ``with_deadline_async`` block.

    Attributes:
        deadline: Absolute deadline timestamp (monotonic clock)
        timeout_seconds: Effective timeout value in seconds
        operation: Name/description of the operation
        start_time: When the deadline context started
    """

    deadline: float
    timeout_seconds: float
    operation: str = "operation"
    start_time: float = field(default_factory=time.monotonic)

    def remaining(self) -> float:
        """Remaining time until deadline in seconds (negative if expired)."""
        return self.deadline - time.monotonic()

    @property
    def elapsed(self) -> float:
        """Elapsed time since start in seconds."""
        return time.monotonic() - self.start_time

    def is_expired(self) -> bool:
        """True if deadline has passed."""
        return time.monotonic() >= self.deadline

    def check(self, op_name: str | None = None) -> None:
        """Raise ``TimeoutExpired`` if the deadline has passed."""
        if self.is_expired():
            raise TimeoutExpired(
                timeout=self.timeout_seconds,
                elapsed=self.elapsed,
                operation=op_name or self.operation,
            )


_deadline_stack: ContextVar[tuple[DeadlineContext, ...]] = ContextVar("gateflow_deadlines", default=())


def get_current_deadline() -> DeadlineContext | None:
    """Get the innermost active deadline for this task, if any."""
    stack = _deadline_stack.get()
    return stack[-1] if stack else None


def get_effective_timeout(requested: float) -> float:
    """Clamp a requested timeout to the remaining time of the current deadline."""
    current = get_current_deadline()
    if current is None:
        return requested
    return max(0.0, min(requested, current.remaining()))


@asynccontextmanager
async def with_deadline_async(seconds: float, operation: str | None = None) -> AsyncIterator[DeadlineContext]:
    """Async context manager enforcing a time limit on the enclosed block.

    Args:
        seconds: Maximum time allowed
        operation: Name/description for error messages

    Yields:
        DeadlineContext for checking remaining time

    Raises:
        TimeoutExpired: If the deadline is exceeded
        ValueError: If seconds < 0
    """
    if seconds < 0:
        raise ValueError(f"Timeout must be non-negative, got {seconds}")

    effective = get_effective_timeout(seconds)
    now = time.monotonic()
    ctx = DeadlineContext(
        deadline=now + effective,
        timeout_seconds=effective,
        operation=operation or "operation",
        start_time=now,
    )

    token = _deadline_stack.set(_deadline_stack.get() + (ctx,))
    try:
        async with asyncio.timeout(effective):
            yield ctx
    except TimeoutError as exc:
        if isinstance(exc, TimeoutExpired) or not ctx.is_expired():
            raise
        raise TimeoutExpired(
            timeout=effective,
            elapsed=ctx.elapsed,
            operation=ctx.operation,
        ) from None
    finally:
        _deadline_stack.reset(token)


__all__ = [
    "TimeoutExpired",
    "DeadlineContext",
    "get_current_deadline",
    "get_effective_timeout",
    "with_deadline_async",
]
