"""
FastAPI dependency injection — the app's singletons.

Usage in routers::

    from gateflow.api.deps import ActiveWorkflow, Runner

    @router.get("/")
    async def trigger(runner: Runner, workflow: ActiveWorkflow):
        ...

The runner and the workflow are built once in :func:`create_app` and kept
on ``app.state``; routers read them through these dependencies so tests
can override them.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from gateflow.core.settings import GateflowSettings, get_settings
from gateflow.orchestration.workflow import Workflow
from gateflow.orchestration.workflow_runner import WorkflowRunner


def get_runner(request: Request) -> WorkflowRunner:
    return request.app.state.runner


def get_active_workflow(request: Request) -> Workflow:
    return request.app.state.workflow


Settings = Annotated[GateflowSettings, Depends(get_settings)]
Runner = Annotated[WorkflowRunner, Depends(get_runner)]
ActiveWorkflow = Annotated[Workflow, Depends(get_active_workflow)]
