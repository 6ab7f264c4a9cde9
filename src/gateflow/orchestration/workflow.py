"""Workflow — a named, statically validated pipeline of steps.

Manifesto:
    A deployment runs one fixed pipeline per inbound request. The Workflow
dataclass is the blueprint: it declares **what** to run and in what order,
but never **how** to run it (that's WorkflowRunner's job). It is built
once at startup and validated then, so a malformed pipeline fails the
deployment rather than a request.

ARCHITECTURE
────────────
::

    Workflow             ── ordered steps + run-level policy
      ├── steps[]          ── Fetch, then optional Transform / Persist / Shape
      ├── timeout_seconds  ── overall deadline for one run
      ├── output_path      ── selects the invocation result from the final document
      └── include_execution_data ── log step inputs/outputs

    Structural rules (checked in ``__post_init__``):
      - 1 to 5 steps, unique names
      - the first step is a fetch, and it is the only fetch
      - at most one persist
      - a shape step, if present, is the last step
      - 0 < timeout_seconds <= 300

The minimal variant is a one-step workflow whose ``output_path`` surfaces
the fetched body; it runs through the same runner code path as the full
Fetch → Transform → Persist → Shape variant.

Example::

    from gateflow.orchestration import Workflow, Step

    workflow = Workflow(
        name="ip",
        steps=[Step.fetch("fetch", "https://api.ipify.org")],
        output_path="$.http.body",
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from gateflow.core.errors import InvalidPathError, InvalidWorkflowError
from gateflow.orchestration.paths import parse_path
from gateflow.orchestration.step_types import Step, StepType

MAX_STEPS = 5
MAX_TIMEOUT_SECONDS = 300.0
DEFAULT_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class Workflow:
    """
    A named workflow with ordered steps.

    Attributes:
        name: Unique workflow name (e.g., "weather")
        steps: Ordered steps to execute
        description: Human-readable description
        timeout_seconds: Overall deadline for one run
        output_path: Path selecting the invocation result ("$" = whole document)
        include_execution_data: Log step inputs and outputs
        tags: Optional tags for filtering/organization
    """

    name: str
    steps: tuple[Step, ...]
    description: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    output_path: str = "$"
    include_execution_data: bool = True
    tags: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "tags", tuple(self.tags))
        self._validate()

    def _validate(self) -> None:
        """Validate workflow structure."""
        if not self.name:
            raise InvalidWorkflowError("Workflow name must not be empty")

        if not self.steps:
            raise InvalidWorkflowError(f"Workflow '{self.name}' has no steps")
        if len(self.steps) > MAX_STEPS:
            raise InvalidWorkflowError(
                f"Workflow '{self.name}' has {len(self.steps)} steps (max {MAX_STEPS})"
            )

        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise InvalidWorkflowError(f"Duplicate step name: {step.name}")
            seen.add(step.name)

        kinds = [step.step_type for step in self.steps]
        if kinds[0] != StepType.FETCH:
            raise InvalidWorkflowError(f"Workflow '{self.name}' must start with a fetch step")
        if kinds.count(StepType.FETCH) > 1:
            raise InvalidWorkflowError(f"Workflow '{self.name}' has more than one fetch step")
        if kinds.count(StepType.PERSIST) > 1:
            raise InvalidWorkflowError(f"Workflow '{self.name}' has more than one persist step")
        if StepType.SHAPE in kinds[:-1]:
            raise InvalidWorkflowError(f"Workflow '{self.name}': a shape step must be the last step")

        if not 0 < self.timeout_seconds <= MAX_TIMEOUT_SECONDS:
            raise InvalidWorkflowError(
                f"Workflow '{self.name}' timeout must be in (0, {MAX_TIMEOUT_SECONDS:g}] seconds, "
                f"got {self.timeout_seconds}"
            )

        try:
            parsed = parse_path(self.output_path)
        except InvalidPathError as e:
            raise InvalidWorkflowError(f"Workflow '{self.name}' output_path: {e.message}") from e
        if parsed.metadata_root:
            raise InvalidWorkflowError(f"Workflow '{self.name}' output_path must address the document ('$')")

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def fetch_step(self) -> Step:
        return self.steps[0]

    @property
    def persists(self) -> bool:
        """Whether a run of this workflow writes a record."""
        return any(s.step_type == StepType.PERSIST for s in self.steps)

    def get_step(self, name: str) -> Step | None:
        """Get step by name."""
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def step_names(self) -> list[str]:
        """Get ordered list of step names."""
        return [s.name for s in self.steps]

    def with_overrides(
        self,
        upstream_url: str | None = None,
        timeout_seconds: float | None = None,
        fetch_timeout_seconds: float | None = None,
    ) -> Workflow:
        """Copy with per-deployment overrides applied (validated again)."""
        fetch = self.fetch_step
        if upstream_url is not None or fetch_timeout_seconds is not None:
            fetch = replace(
                fetch,
                url=upstream_url or fetch.url,
                timeout_seconds=fetch_timeout_seconds or fetch.timeout_seconds,
            )
        return replace(
            self,
            steps=(fetch, *self.steps[1:]),
            timeout_seconds=timeout_seconds or self.timeout_seconds,
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for display / JSON."""
        result: dict[str, Any] = {
            "name": self.name,
            "timeout_seconds": self.timeout_seconds,
            "output_path": self.output_path,
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.description:
            result["description"] = self.description
        if not self.include_execution_data:
            result["include_execution_data"] = False
        if self.tags:
            result["tags"] = list(self.tags)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Workflow:
        """Deserialize from dictionary."""
        return cls(
            name=data["name"],
            steps=tuple(Step.from_dict(sd) for sd in data.get("steps", [])),
            description=data.get("description", ""),
            timeout_seconds=data.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
            output_path=data.get("output_path", "$"),
            include_execution_data=data.get("include_execution_data", True),
            tags=tuple(data.get("tags", [])),
        )

    def __repr__(self) -> str:
        return f"Workflow({self.name!r}, steps={self.step_names()})"
