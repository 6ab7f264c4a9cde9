"""Workflow Runner — executes one workflow invocation end to end.

The WorkflowRunner takes a :class:`~gateflow.orchestration.workflow.Workflow`
and executes its steps strictly in sequence, threading a single
:class:`~gateflow.orchestration.workflow_context.WorkflowContext` through
them. It handles:

- **Fetch** steps (one outbound GET via :class:`ExternalFetcher`)
- **Transform** steps (filter-mode field extraction)
- **Persist** steps (one record written through a :class:`RecordStore`)
- **Shape** steps (final-mode field extraction)
- The run-level deadline (``asyncio.timeout``; expiry → ``WorkflowTimeout``)
- Execution logging and trace spans

The first failing step ends the run; there are no retries, no catch
handlers and no compensation. ``execute`` never raises for step failures:
the outcome is a :class:`WorkflowResult` whose ``unwrap()`` returns the
output or raises the terminal error.

Example::

    from gateflow.connectors import ExternalFetcher, MemoryRecordStore
    from gateflow.orchestration import WorkflowRunner, get_workflow

    runner = WorkflowRunner(fetcher=ExternalFetcher(), store=MemoryRecordStore())
    result = await runner.execute(get_workflow("weather"))

    if result.status == WorkflowStatus.COMPLETED:
        print(result.output)
    else:
        print(f"Failed at {result.error_step}: {result.error}")
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from gateflow.connectors.fetcher import ExternalFetcher, FetchRequest
from gateflow.connectors.store import RecordStore
from gateflow.core.errors import (
    ConfigError,
    GateflowError,
    InternalError,
    WorkflowTimeout,
)
from gateflow.core.logging import LogContext, get_logger
from gateflow.core.timestamps import utc_now
from gateflow.execution.timeout import DeadlineContext, TimeoutExpired, with_deadline_async
from gateflow.observability.tracing import start_span
from gateflow.orchestration.extractor import ExtractMode, extract, extract_record
from gateflow.orchestration.paths import resolve_path
from gateflow.orchestration.step_result import StepResult
from gateflow.orchestration.step_types import Step, StepType
from gateflow.orchestration.workflow import Workflow
from gateflow.orchestration.workflow_context import WorkflowContext

logger = get_logger(__name__)


class WorkflowStatus(str, Enum):
    """Overall status of workflow execution."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StepExecution:
    """Execution log entry for a single step."""

    step_name: str
    step_type: str
    status: str = "running"  # running, completed, failed
    started_at: datetime | None = None
    completed_at: datetime | None = None
    input: dict[str, Any] | None = None
    result: StepResult | None = None
    error: GateflowError | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Calculate step duration."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def output(self) -> dict[str, Any] | None:
        if self.result is None or not self.result.success:
            return None
        return self.result.output

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging."""
        return {
            "step_name": self.step_name,
            "step_type": self.step_type,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "input": self.input,
            "output": self.output,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class WorkflowResult:
    """Outcome of one workflow invocation."""

    workflow_name: str
    run_id: str
    status: WorkflowStatus
    context: WorkflowContext
    started_at: datetime
    completed_at: datetime | None = None
    output: Any = None
    step_executions: list[StepExecution] = field(default_factory=list)
    error_step: str | None = None
    error: GateflowError | None = None
    trace_id: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == WorkflowStatus.COMPLETED

    @property
    def duration_seconds(self) -> float | None:
        """Total workflow duration."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def completed_steps(self) -> list[str]:
        """List of successfully completed step names."""
        return [s.step_name for s in self.step_executions if s.status == "completed"]

    @property
    def failed_steps(self) -> list[str]:
        """List of failed step names."""
        return [s.step_name for s in self.step_executions if s.status == "failed"]

    def unwrap(self) -> Any:
        """Return the output, or raise the terminal error of a failed run."""
        if self.error is not None:
            raise self.error
        return self.output

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging/display."""
        return {
            "workflow_name": self.workflow_name,
            "run_id": self.run_id,
            "trace_id": self.trace_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "completed_steps": self.completed_steps,
            "failed_steps": self.failed_steps,
            "error_step": self.error_step,
            "error": self.error.to_dict() if self.error else None,
            "output": self.output,
            "step_executions": [s.to_dict() for s in self.step_executions],
        }


class WorkflowRunner:
    """Executes workflows against one fetcher and (optionally) one record store.

    The runner holds no per-run state: every ``execute`` call builds a fresh
    context, so one runner can serve concurrent invocations.
    """

    def __init__(self, fetcher: ExternalFetcher, store: RecordStore | None = None) -> None:
        """Initialise the workflow runner.

        Args:
            fetcher: Performs the fetch step's outbound GET.
            store: Receives the persist step's record. Workflows without a
                persist step run without one.
        """
        self._fetcher = fetcher
        self._store = store

    @property
    def fetcher(self) -> ExternalFetcher:
        return self._fetcher

    @property
    def store(self) -> RecordStore | None:
        return self._store

    async def execute(
        self,
        workflow: Workflow,
        trigger: dict[str, Any] | None = None,
        started_at: datetime | None = None,
        run_id: str | None = None,
    ) -> WorkflowResult:
        """
        Execute one invocation of a workflow.

        Args:
            workflow: The workflow to execute
            trigger: Inbound trigger details (``path``, ``query``)
            started_at: Host-supplied invocation start time (defaults to now)
            run_id: Optional run ID (auto-generated if not provided)

        Returns:
            WorkflowResult with status, output and the execution log
        """
        context = WorkflowContext.create(
            workflow.name,
            trigger=trigger,
            started_at=started_at,
            run_id=run_id,
        )
        result = WorkflowResult(
            workflow_name=workflow.name,
            run_id=context.run_id,
            status=WorkflowStatus.RUNNING,
            context=context,
            started_at=utc_now(),
        )

        with start_span("workflow.run", workflow=workflow.name, run_id=context.run_id) as span:
            result.trace_id = span.trace_id
            with LogContext(workflow=workflow.name, run_id=context.run_id, trace_id=span.trace_id):
                logger.info(
                    "workflow.start",
                    steps=workflow.step_names(),
                    timeout_seconds=workflow.timeout_seconds,
                    start_time=context.start_timestamp,
                )
                try:
                    async with with_deadline_async(workflow.timeout_seconds, operation=workflow.name) as deadline:
                        context = await self._run_steps(workflow, context, result, deadline)
                except TimeoutExpired as e:
                    self._fail(result, self._timeout_error(workflow, context, e.elapsed))
                    self._close_running_step(result)

                if result.error is None:
                    self._finish(workflow, context, result)

                result.completed_at = utc_now()
                if result.error is not None:
                    span.record_error(result.error)
                logger.info(
                    "workflow.complete",
                    status=result.status.value,
                    duration_seconds=result.duration_seconds,
                    completed_steps=result.completed_steps,
                    error_step=result.error_step,
                    error_code=result.error.code if result.error else None,
                )
        return result

    # =========================================================================
    # Run loop
    # =========================================================================

    async def _run_steps(
        self,
        workflow: Workflow,
        context: WorkflowContext,
        result: WorkflowResult,
        deadline: DeadlineContext,
    ) -> WorkflowContext:
        for step in workflow.steps:
            deadline.check(step.name)

            execution = StepExecution(
                step_name=step.name,
                step_type=step.step_type.value,
                started_at=utc_now(),
                input=copy.deepcopy(context.document) if workflow.include_execution_data else None,
            )
            result.step_executions.append(execution)
            logger.info("step.start", step=step.name, step_type=step.step_type.value)

            step_result, new_context = await self._execute_step(step, context)
            execution.completed_at = utc_now()
            execution.result = step_result

            if not step_result.success:
                error = step_result.error
                if deadline.is_expired():
                    error = self._timeout_error(workflow, context, deadline.elapsed, cause=error)
                error.with_context(workflow=workflow.name, step=step.name, run_id=context.run_id)
                execution.status = "failed"
                execution.error = error
                result.error_step = step.name
                self._fail(result, error)
                logger.warning(
                    "step.failed",
                    step=step.name,
                    error_code=error.code,
                    category=error.category.value,
                    error=error.message,
                    duration_seconds=execution.duration_seconds,
                )
                break

            execution.status = "completed"
            context = new_context
            log_kwargs: dict[str, Any] = {}
            if workflow.include_execution_data:
                log_kwargs = {"input": execution.input, "output": step_result.output}
            logger.info(
                "step.complete",
                step=step.name,
                duration_seconds=execution.duration_seconds,
                **log_kwargs,
            )

        result.context = context
        return context

    async def _execute_step(
        self,
        step: Step,
        context: WorkflowContext,
    ) -> tuple[StepResult, WorkflowContext]:
        """Run one step and apply its result; failures come back as ``StepResult.fail``."""
        handlers = {
            StepType.FETCH: self._execute_fetch,
            StepType.TRANSFORM: self._execute_transform,
            StepType.PERSIST: self._execute_persist,
            StepType.SHAPE: self._execute_shape,
        }
        with start_span(f"step.{step.name}", step=step.name, step_type=step.step_type.value) as span:
            try:
                step_result = await handlers[step.step_type](step, context)
                if step_result.success:
                    if step_result.document is not None:
                        new_context = context.replaced(step_result.document)
                    else:
                        new_context = context.with_updates(step_result.updates)
                    new_context.ensure_serializable()
                    return step_result, new_context
            except TimeoutExpired:
                raise
            except GateflowError as e:
                step_result = StepResult.fail(e)
            except Exception as e:
                logger.exception("step.internal_error", step=step.name)
                step_result = StepResult.fail(
                    InternalError(f"Step '{step.name}' failed unexpectedly: {e}", cause=e)
                )
            span.record_error(step_result.error)
            return step_result, context

    # =========================================================================
    # Step handlers
    # =========================================================================

    async def _execute_fetch(self, step: Step, context: WorkflowContext) -> StepResult:
        query: dict[str, str] = {}
        if step.passthrough_query:
            query = {str(k): str(v) for k, v in (context.trigger.get("query") or {}).items()}
        response = await self._fetcher.fetch(
            FetchRequest(
                url=step.url,
                timeout_seconds=step.timeout_seconds,
                query=query,
                method=step.method,
            )
        )
        return StepResult.ok({step.result_field: response.to_document()})

    async def _execute_transform(self, step: Step, context: WorkflowContext) -> StepResult:
        updated = extract(context, step.mapping, ExtractMode.FILTER)
        return StepResult.ok({name: updated.document[name] for name in step.mapping})

    async def _execute_persist(self, step: Step, context: WorkflowContext) -> StepResult:
        if self._store is None:
            raise ConfigError(f"Persist step '{step.name}' has no record store configured")
        record = extract_record(context.document, step.mapping, context.metadata_document())
        ack = await self._store.put(record, step.key_field)
        logger.debug("store.put", step=step.name, key=ack.key, status_code=ack.status_code)
        return StepResult.ok({step.result_field: ack.to_document()})

    async def _execute_shape(self, step: Step, context: WorkflowContext) -> StepResult:
        return StepResult.replace(extract(context, step.mapping, ExtractMode.FINAL).document)

    # =========================================================================
    # Terminal states
    # =========================================================================

    def _finish(self, workflow: Workflow, context: WorkflowContext, result: WorkflowResult) -> None:
        try:
            result.output = copy.deepcopy(resolve_path(workflow.output_path, context.document))
        except GateflowError as e:
            self._fail(result, e.with_context(workflow=workflow.name, run_id=context.run_id))
            return
        result.status = WorkflowStatus.COMPLETED

    @staticmethod
    def _fail(result: WorkflowResult, error: GateflowError) -> None:
        result.status = WorkflowStatus.FAILED
        result.error = error
        result.output = None

    @staticmethod
    def _close_running_step(result: WorkflowResult) -> None:
        """Mark the step that was in flight when the deadline fired."""
        for execution in result.step_executions:
            if execution.status == "running":
                execution.status = "failed"
                execution.completed_at = utc_now()
                execution.error = result.error
                result.error_step = execution.step_name
                result.error.with_context(step=execution.step_name)
                logger.warning(
                    "step.failed",
                    step=execution.step_name,
                    error_code=result.error.code,
                    category=result.error.category.value,
                    error=result.error.message,
                    duration_seconds=execution.duration_seconds,
                )

    @staticmethod
    def _timeout_error(
        workflow: Workflow,
        context: WorkflowContext,
        elapsed: float | None,
        cause: BaseException | None = None,
    ) -> WorkflowTimeout:
        return WorkflowTimeout(workflow.timeout_seconds, elapsed=elapsed, cause=cause).with_context(
            workflow=workflow.name, run_id=context.run_id
        )


__all__ = [
    "StepExecution",
    "WorkflowResult",
    "WorkflowRunner",
    "WorkflowStatus",
]
