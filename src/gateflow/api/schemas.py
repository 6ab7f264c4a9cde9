"""
API schemas — the health payload and RFC 7807 problem responses.

A successful trigger returns the workflow output as-is (a JSON object for
the shaped variants, the raw upstream text for the minimal one), so only the
error envelope and the health payload have schemas.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Used for every failed invocation. ``code`` is the terminal error kind,
    ``step`` the step that failed (absent for run-level failures).
    ``upstream_body`` carries the upstream's own answer for ``UpstreamError``.

    Error Codes:
        - ``UpstreamError`` (mirrors upstream): upstream answered non-2xx
        - ``UpstreamUnavailable`` (502): upstream unreachable
        - ``UpstreamTimeout`` (504): upstream exceeded its budget
        - ``PathNotFound`` (502): response lacked an expected field
        - ``StoreUnavailable`` (503): record store write failed
        - ``StoreThrottled`` (503): record store at capacity
        - ``WorkflowTimeout`` (504): run exceeded its deadline
        - ``InternalError`` (500): unexpected failure
    """

    type: str = Field(default="about:blank", description="Problem type URI")
    title: str = Field(description="Short summary of the problem type")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Explanation specific to this occurrence")
    instance: str = Field(default="", description="URI of the request that failed")
    code: str = Field(description="Terminal error kind (e.g. 'UpstreamTimeout')")
    category: str = Field(description="Error category (UPSTREAM, SHAPING, STORAGE, ...)")
    step: str | None = Field(default=None, description="Name of the step that failed")
    run_id: str | None = Field(default=None, description="Run identifier, for log correlation")
    upstream_body: Any = Field(default=None, description="Body of the upstream error response, as received")


class HealthResponse(BaseModel):
    """Liveness payload for ``GET /health``."""

    status: str = Field(default="ok")
    workflow: str = Field(description="Workflow variant this deployment serves")
