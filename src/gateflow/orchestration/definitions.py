"""Workflow Definitions — the per-deployment variants and their registry.

Manifesto:
A deployment runs exactly one variant, chosen by configuration and built
once at startup. Variants are plain ``Workflow`` values assembled from the
``Step`` factories; the registry lets the API, the CLI and tests look them
up by name without knowing which module defined them.

ARCHITECTURE
────────────
::

    ip        Fetch                                    → output $.http.body
    ip-log    Fetch → Persist → Shape                  → {ip, timest, ddb_status}
    weather   Fetch → Transform → Persist → Shape      → {weather, event_date, ddb_status}

    register_workflow(workflow_or_factory)   → stores in the registry
    get_workflow(name)                       → Workflow or WorkflowNotFoundError
    list_workflows()                         → sorted names
    workflow_from_settings(settings)         → selected variant + overrides

The record key of the weather variant is the upstream ``Date`` header when
present and the invocation start time otherwise; the fallback order is part
of the Transform mapping, so it is visible in ``gateflow show weather``.

Tags:
    gateflow, orchestration, registry, definitions, variants

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable

from gateflow.core.errors import ConfigError
from gateflow.core.logging import get_logger
from gateflow.core.settings import GateflowSettings
from gateflow.orchestration.step_types import Step
from gateflow.orchestration.workflow import Workflow

logger = get_logger(__name__)

IPIFY_URL = "https://api.ipify.org"
WTTR_URL = "https://wttr.in/?format=3"

_registry: dict[str, Workflow] = {}


class WorkflowNotFoundError(ConfigError):
    """Raised when a workflow is not found in the registry."""

    code = "WorkflowNotFound"

    def __init__(self, name: str) -> None:
        self.workflow_name = name
        available = ", ".join(sorted(_registry)) if _registry else "(none)"
        super().__init__(f"Workflow '{name}' not found. Available: {available}")


# =============================================================================
# Variants
# =============================================================================


def ip_workflow(url: str = IPIFY_URL) -> Workflow:
    """Minimal variant: return the upstream body as-is, persist nothing."""
    return Workflow(
        name="ip",
        description="Return the caller-visible public IP address",
        steps=(Step.fetch("fetch", url),),
        output_path="$.http.body",
        tags=("minimal",),
    )


def ip_log_workflow(url: str = IPIFY_URL) -> Workflow:
    """Fetch the public IP and log it keyed by the invocation start time."""
    return Workflow(
        name="ip-log",
        description="Fetch the public IP address and record it",
        steps=(
            Step.fetch("fetch", url),
            Step.persist(
                "persist",
                {"ip": "$.http.body", "timest": "$$.Execution.StartTime"},
                key_field="timest",
            ),
            Step.shape(
                "shape",
                {"ip": "$.http.body", "timest": "$.ddb.key", "ddb_status": "$.ddb.status_code"},
            ),
        ),
        tags=("persist",),
    )


def weather_workflow(url: str = WTTR_URL) -> Workflow:
    """Full variant: Fetch → Transform → Persist → Shape."""
    return Workflow(
        name="weather",
        description="Fetch a weather line, record it and report the write",
        steps=(
            Step.fetch("fetch", url),
            Step.transform(
                "filter",
                {
                    "weather": "$.http.body",
                    "event_date": ("$.http.headers.Date[0]", "$$.Execution.StartTime"),
                },
            ),
            Step.persist(
                "persist",
                {"weather": "$.weather", "timest": "$.event_date"},
                key_field="timest",
            ),
            Step.shape(
                "shape",
                {
                    "weather": "$.weather",
                    "event_date": "$.event_date",
                    "ddb_status": "$.ddb.status_code",
                },
            ),
        ),
        tags=("persist", "full"),
    )


# =============================================================================
# Registry
# =============================================================================


def register_workflow(workflow_or_factory: Workflow | Callable[[], Workflow], replace: bool = False) -> Workflow:
    """
    Register a workflow instance, or the workflow a zero-arg factory returns.

    Raises:
        ValueError: If a workflow with the same name is already registered
        TypeError: If the argument does not produce a Workflow
    """
    if callable(workflow_or_factory) and not isinstance(workflow_or_factory, Workflow):
        workflow = workflow_or_factory()
    else:
        workflow = workflow_or_factory

    if not isinstance(workflow, Workflow):
        raise TypeError(f"Expected Workflow, got {type(workflow).__name__}")
    if workflow.name in _registry and not replace:
        raise ValueError(f"Workflow '{workflow.name}' is already registered")

    _registry[workflow.name] = workflow
    logger.debug("workflow_registered", name=workflow.name, step_count=len(workflow.steps))
    return workflow


def get_workflow(name: str) -> Workflow:
    """Get a workflow by name.

    Raises:
        WorkflowNotFoundError: If the workflow is not registered
    """
    try:
        return _registry[name]
    except KeyError:
        raise WorkflowNotFoundError(name) from None


def list_workflows() -> list[str]:
    """Sorted names of all registered workflows."""
    return sorted(_registry)


def workflow_exists(name: str) -> bool:
    return name in _registry


def reset_registry() -> None:
    """Restore the registry to the built-in variants (for tests)."""
    _registry.clear()
    for factory in (ip_workflow, ip_log_workflow, weather_workflow):
        register_workflow(factory)


def workflow_from_settings(settings: GateflowSettings) -> Workflow:
    """The variant a deployment serves, with its configured overrides applied."""
    workflow = get_workflow(settings.workflow).with_overrides(
        upstream_url=settings.upstream_url,
        timeout_seconds=settings.timeout_seconds,
        fetch_timeout_seconds=settings.fetch_timeout_seconds,
    )
    logger.info(
        "workflow.configured",
        workflow=workflow.name,
        url=workflow.fetch_step.url,
        timeout_seconds=workflow.timeout_seconds,
    )
    return workflow


reset_registry()


__all__ = [
    "IPIFY_URL",
    "WTTR_URL",
    "WorkflowNotFoundError",
    "get_workflow",
    "ip_log_workflow",
    "ip_workflow",
    "list_workflows",
    "register_workflow",
    "reset_registry",
    "weather_workflow",
    "workflow_exists",
    "workflow_from_settings",
]
