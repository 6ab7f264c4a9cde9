"""
gateflow Orchestration — the per-request workflow engine.

ARCHITECTURE
────────────
::

    Workflow (1-5 linear Steps)
      ├── Step.fetch()        ─ outbound GET → ``http``
      ├── Step.transform()    ─ filter-mode extraction (merge)
      ├── Step.persist()      ─ record store write → ``ddb``
      └── Step.shape()        ─ final-mode extraction (replace)

    WorkflowRunner         ─ sequential execution under one deadline
    WorkflowContext        ─ immutable context flowing step-to-step
    StepResult             ─ ok / replace / fail envelope
    definitions            ─ ip, ip-log and weather variants + registry

MODULE MAP (recommended reading order)
──────────────────────────────────────
1. paths.py              ─ ``$`` / ``$$`` path language
2. workflow_context.py   ─ immutable context object
3. extractor.py          ─ filter / final field extraction
4. step_result.py        ─ StepResult envelope
5. step_types.py         ─ Step dataclass + factory methods
6. workflow.py           ─ Workflow dataclass + structural rules
7. workflow_runner.py    ─ execution engine
8. definitions.py        ─ deployment variants and registry

Example:
    from gateflow.connectors import ExternalFetcher, MemoryRecordStore
    from gateflow.orchestration import WorkflowRunner, get_workflow

    runner = WorkflowRunner(ExternalFetcher(), MemoryRecordStore())
    result = await runner.execute(get_workflow("weather"))
    print(result.unwrap())
"""

from gateflow.orchestration.definitions import (
    WorkflowNotFoundError,
    get_workflow,
    list_workflows,
    register_workflow,
    workflow_from_settings,
)
from gateflow.orchestration.extractor import ExtractMode, extract, extract_record
from gateflow.orchestration.paths import parse_path, resolve_first, resolve_path
from gateflow.orchestration.step_result import StepResult
from gateflow.orchestration.step_types import Step, StepType
from gateflow.orchestration.workflow import Workflow
from gateflow.orchestration.workflow_context import WorkflowContext
from gateflow.orchestration.workflow_runner import (
    StepExecution,
    WorkflowResult,
    WorkflowRunner,
    WorkflowStatus,
)

__all__ = [
    # Core types
    "Workflow",
    "Step",
    "StepType",
    "StepResult",
    "WorkflowContext",
    # Runner
    "WorkflowRunner",
    "WorkflowResult",
    "WorkflowStatus",
    "StepExecution",
    # Paths / extraction
    "ExtractMode",
    "extract",
    "extract_record",
    "parse_path",
    "resolve_first",
    "resolve_path",
    # Registry
    "WorkflowNotFoundError",
    "get_workflow",
    "list_workflows",
    "register_workflow",
    "workflow_from_settings",
]
