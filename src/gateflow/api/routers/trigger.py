"""
Trigger router — the inbound route that runs the workflow, plus health.

``GET /`` runs one invocation of the deployment's workflow. A text output
(the minimal variant's upstream body) is sent back as-is with the upstream
content type; anything else is JSON. The query string is handed to the run
as trigger metadata (``$$.Trigger.query``) and reaches the upstream only
when the fetch step enables passthrough.

Tags:
    gateflow, api, router, trigger, health
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from gateflow.api.deps import ActiveWorkflow, Runner, Settings
from gateflow.api.middleware.errors import problem_for_error
from gateflow.api.schemas import HealthResponse, ProblemDetail
from gateflow.core.errors import PathNotFound
from gateflow.core.logging import get_logger
from gateflow.orchestration.paths import resolve_path
from gateflow.orchestration.workflow_runner import WorkflowResult

logger = get_logger(__name__)

router = APIRouter()

CONTENT_TYPE_PATH = "$.http.headers.Content-Type[0]"


def _text_media_type(result: WorkflowResult) -> str | None:
    """Content type for a text output, or None when it must be JSON-encoded."""
    try:
        media_type = str(resolve_path(CONTENT_TYPE_PATH, result.context.document))
    except PathNotFound:
        return "text/plain; charset=utf-8"
    return None if "json" in media_type.lower() else media_type


@router.get(
    "/",
    response_model=None,
    responses={
        502: {"model": ProblemDetail},
        503: {"model": ProblemDetail},
        504: {"model": ProblemDetail},
        500: {"model": ProblemDetail},
    },
)
async def trigger(request: Request, runner: Runner, workflow: ActiveWorkflow, settings: Settings) -> Response:
    """Run the workflow once and return its output."""
    result = await runner.execute(
        workflow,
        trigger={"path": request.url.path, "query": dict(request.query_params)},
    )
    headers = {"X-Trace-ID": result.trace_id} if result.trace_id else {}

    if result.error is not None:
        return problem_for_error(
            result.error,
            instance=str(request.url),
            debug=settings.debug,
            headers=headers,
        )
    media_type = _text_media_type(result) if isinstance(result.output, str) else None
    if media_type is not None:
        return Response(content=result.output, media_type=media_type, headers=headers)
    return JSONResponse(content=result.output, headers=headers)


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health(workflow: ActiveWorkflow) -> HealthResponse:
    """Liveness check; does not call the upstream or the store."""
    return HealthResponse(workflow=workflow.name)
