"""Tests for run-level deadline enforcement."""

import asyncio
import time

import pytest

from gateflow.execution.timeout import (
    DeadlineContext,
    TimeoutExpired,
    get_current_deadline,
    get_effective_timeout,
    with_deadline_async,
)


class TestDeadlineContext:
    """Tests for DeadlineContext dataclass."""

    def test_remaining_positive(self):
        ctx = DeadlineContext(deadline=time.monotonic() + 5.0, timeout_seconds=5.0, operation="test")
        assert 4.5 < ctx.remaining() <= 5.0
        assert not ctx.is_expired()

    def test_expired(self):
        ctx = DeadlineContext(deadline=time.monotonic() - 1.0, timeout_seconds=5.0, operation="test")
        assert ctx.remaining() < 0
        assert ctx.is_expired()

    def test_check_raises_when_expired(self):
        ctx = DeadlineContext(deadline=time.monotonic() - 1.0, timeout_seconds=5.0, operation="weather")
        with pytest.raises(TimeoutExpired) as exc_info:
            ctx.check("persist")
        assert exc_info.value.operation == "persist"
        assert exc_info.value.timeout == 5.0


class TestWithDeadlineAsync:
    @pytest.mark.asyncio
    async def test_completes_within_deadline(self):
        async with with_deadline_async(1.0, operation="fast") as deadline:
            await asyncio.sleep(0)
            assert get_current_deadline() is deadline
        assert get_current_deadline() is None

    @pytest.mark.asyncio
    async def test_expiry_cancels_and_raises(self):
        with pytest.raises(TimeoutExpired) as exc_info:
            async with with_deadline_async(0.05, operation="slow"):
                await asyncio.sleep(5)
        assert exc_info.value.operation == "slow"
        assert exc_info.value.elapsed is not None
        assert get_current_deadline() is None

    @pytest.mark.asyncio
    async def test_unrelated_timeout_error_passes_through(self):
        with pytest.raises(TimeoutError) as exc_info:
            async with with_deadline_async(5.0):
                raise TimeoutError("from a library")
        assert not isinstance(exc_info.value, TimeoutExpired)

    @pytest.mark.asyncio
    async def test_nested_deadline_never_extends_outer(self):
        async with with_deadline_async(0.5):
            async with with_deadline_async(10.0) as inner:
                assert inner.timeout_seconds <= 0.5

    @pytest.mark.asyncio
    async def test_negative_timeout_rejected(self):
        with pytest.raises(ValueError):
            async with with_deadline_async(-1):
                pass

    @pytest.mark.asyncio
    async def test_concurrent_tasks_have_separate_deadlines(self):
        seen: dict[str, float] = {}

        async def run(name: str, seconds: float) -> None:
            async with with_deadline_async(seconds, operation=name):
                await asyncio.sleep(0.01)
                seen[name] = get_current_deadline().timeout_seconds

        await asyncio.gather(run("a", 1.0), run("b", 2.0))
        assert seen == {"a": 1.0, "b": 2.0}


class TestHelpers:
    def test_no_deadline_outside_context(self):
        assert get_current_deadline() is None
        assert get_effective_timeout(3.0) == 3.0
