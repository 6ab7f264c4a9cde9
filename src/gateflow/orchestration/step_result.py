"""Step Result — universal envelope for step execution outcomes.

Manifesto:
    Every step kind must return a uniform result so that the WorkflowRunner
can decide success/failure and apply the step's effect to the execution
context without knowing which kind ran. ``StepResult`` is that envelope.

ARCHITECTURE
────────────
::

    StepResult
      ├── .ok(updates)              → merge fields into the document
      ├── .replace(document)        → document becomes exactly this
      └── .fail(error)              → terminal failure with a typed error

BEST PRACTICES
──────────────
- Prefer the factories over constructing directly.
- A failed result always carries a ``GateflowError``; the runner turns it
  into the run's terminal error unchanged.

Related modules:
    step_types.py       — Step definitions that produce StepResults
    workflow_runner.py  — consumes StepResults to drive workflow state
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from gateflow.core.errors import GateflowError


@dataclass(frozen=True)
class StepResult:
    """
    Result from executing a workflow step.

    Attributes:
        success: Whether the step completed successfully
        updates: Fields to set in the document (filter-style steps)
        document: Full replacement document (shape steps), else None
        error: Terminal error if success=False
    """

    success: bool
    updates: dict[str, Any] = field(default_factory=dict)
    document: dict[str, Any] | None = None
    error: GateflowError | None = None

    def __post_init__(self):
        if not self.success and self.error is None:
            raise ValueError("A failed StepResult needs an error")

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def ok(cls, updates: dict[str, Any] | None = None) -> StepResult:
        """Create a successful result that merges ``updates`` into the document."""
        return cls(success=True, updates=updates or {})

    @classmethod
    def replace(cls, document: dict[str, Any]) -> StepResult:
        """Create a successful result that replaces the whole document."""
        return cls(success=True, document=document)

    @classmethod
    def fail(cls, error: GateflowError) -> StepResult:
        """Create a failed result."""
        return cls(success=False, error=error)

    @property
    def output(self) -> dict[str, Any]:
        """What this step produced, for the execution log."""
        if self.document is not None:
            return self.document
        return self.updates

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging."""
        result: dict[str, Any] = {"success": self.success}
        if self.success:
            result["replaces_document" if self.document is not None else "updates"] = self.output
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result

    def __repr__(self) -> str:
        status = "OK" if self.success else f"FAIL({self.error.code})"
        return f"StepResult({status}, fields={list(self.output.keys())})"
