"""
Workflow Context - the execution context document passed step-to-step.

Every step receives a WorkflowContext and returns a StepResult whose
updates the runner applies to produce a NEW context for the next step.
The previous context is never mutated, so the execution log can keep a
snapshot of each step's input.

Design Principles:
- One document per run: a JSON-like dict that steps write named fields into
- Serializable: checked at every step boundary (the log and traces need it)
- Fresh per run: no state shared between concurrent runs
- Host metadata (``$$``) kept apart from the document

Example:
    ctx = WorkflowContext.create("weather", trigger={"path": "/", "query": {}})
    ctx = ctx.with_updates({"http": {"status_code": 200, "body": "Sunny"}})
    ctx.get("http")["body"]            # "Sunny"
    ctx.metadata_document()["Execution"]["StartTime"]

Tags:
    gateflow, orchestration, context, execution-context

Doc-Types:
    api-reference
"""

from __future__ import annotations

import copy
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from gateflow.core.errors import InternalError
from gateflow.core.timestamps import to_execution_timestamp, utc_now


@dataclass(frozen=True)
class WorkflowContext:
    """
    Immutable execution context that flows through workflow steps.

    Attributes:
        run_id: Unique identifier for this run
        workflow_name: Name of the workflow being executed
        document: The JSON-like document steps read from and write into
        started_at: Invocation start time (supplied by the host)
        trigger: Inbound trigger details (``path``, ``query``)
    """

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    workflow_name: str = ""
    document: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utc_now)
    trigger: dict[str, Any] = field(default_factory=dict)

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def create(
        cls,
        workflow_name: str,
        trigger: dict[str, Any] | None = None,
        started_at: datetime | None = None,
        run_id: str | None = None,
        document: dict[str, Any] | None = None,
    ) -> WorkflowContext:
        """Create the fresh context for one invocation."""
        return cls(
            run_id=run_id or str(uuid.uuid4()),
            workflow_name=workflow_name,
            document=copy.deepcopy(document) if document else {},
            started_at=started_at or utc_now(),
            trigger={"path": "/", "query": {}, **(trigger or {})},
        )

    # =========================================================================
    # Accessors (read-only)
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Get a top-level document field."""
        return self.document.get(key, default)

    def has(self, key: str) -> bool:
        """Check if the document has a top-level field."""
        return key in self.document

    @property
    def start_timestamp(self) -> str:
        """Start time as exposed to ``$$.Execution.StartTime``."""
        return to_execution_timestamp(self.started_at)

    def metadata_document(self) -> dict[str, Any]:
        """The ``$$`` document path expressions resolve against."""
        return {
            "Execution": {
                "Id": self.run_id,
                "Name": self.run_id,
                "StartTime": self.start_timestamp,
            },
            "StateMachine": {"Name": self.workflow_name},
            "Trigger": copy.deepcopy(self.trigger),
        }

    # =========================================================================
    # Mutation (returns new context)
    # =========================================================================

    def with_updates(self, updates: dict[str, Any]) -> WorkflowContext:
        """New context with fields set or overwritten; other fields kept."""
        new_document = copy.deepcopy(self.document)
        new_document.update(copy.deepcopy(updates))
        return self._copy_with(document=new_document)

    def replaced(self, document: dict[str, Any]) -> WorkflowContext:
        """New context whose document is exactly ``document`` (final shaping)."""
        return self._copy_with(document=copy.deepcopy(document))

    def _copy_with(self, **overrides: Any) -> WorkflowContext:
        return WorkflowContext(
            run_id=overrides.get("run_id", self.run_id),
            workflow_name=overrides.get("workflow_name", self.workflow_name),
            document=overrides.get("document", copy.deepcopy(self.document)),
            started_at=overrides.get("started_at", self.started_at),
            trigger=overrides.get("trigger", copy.deepcopy(self.trigger)),
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def ensure_serializable(self) -> None:
        """Raise InternalError if the document is not JSON-serializable."""
        try:
            json.dumps(self.document)
        except (TypeError, ValueError) as e:
            raise InternalError(f"Execution context is not serializable: {e}", cause=e).with_context(
                workflow=self.workflow_name, run_id=self.run_id
            ) from e

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging."""
        return {
            "run_id": self.run_id,
            "workflow_name": self.workflow_name,
            "document": self.document,
            "started_at": self.start_timestamp,
            "trigger": self.trigger,
        }

    def __repr__(self) -> str:
        return (
            f"WorkflowContext(run_id={self.run_id!r}, "
            f"workflow={self.workflow_name!r}, "
            f"fields={list(self.document.keys())})"
        )
