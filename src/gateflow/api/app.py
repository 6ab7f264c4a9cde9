"""
FastAPI application factory.

``create_app()`` wires the workflow runner, middleware, error handlers and
lifespan events into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root: the workflow variant,
    the fetcher and the record store are chosen here, once, from settings,
    so the routers never construct collaborators themselves.

Tags:
    gateflow, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gateflow import __version__
from gateflow.api.middleware.errors import unhandled_exception_handler
from gateflow.api.middleware.request_id import RequestIDMiddleware
from gateflow.connectors.fetcher import ExternalFetcher
from gateflow.connectors.store import RecordStore, build_store, close_store
from gateflow.core.logging import get_logger
from gateflow.core.settings import GateflowSettings, get_settings
from gateflow.orchestration.definitions import workflow_from_settings
from gateflow.orchestration.workflow import Workflow
from gateflow.orchestration.workflow_runner import WorkflowRunner

log = get_logger("gateflow.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup / shutdown hooks."""
    workflow: Workflow = app.state.workflow
    log.info(
        "gateflow API starting",
        version=app.version,
        workflow=workflow.name,
        steps=workflow.step_names(),
    )
    yield
    await app.state.runner.fetcher.aclose()
    await close_store(app.state.runner.store)
    log.info("gateflow API shutting down")


def create_app(
    settings: GateflowSettings | None = None,
    *,
    workflow: Workflow | None = None,
    fetcher: ExternalFetcher | None = None,
    store: RecordStore | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : GateflowSettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    workflow, fetcher, store
        Inject collaborators instead of building them from settings.
        A store is only built when the workflow has a persist step.
    """
    settings = settings or get_settings()
    workflow = workflow or workflow_from_settings(settings)
    fetcher = fetcher or ExternalFetcher()
    if store is None and workflow.persists:
        store = build_store(settings)

    app = FastAPI(
        title="gateflow",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.workflow = workflow
    app.state.runner = WorkflowRunner(fetcher=fetcher, store=store)

    # Override DI so endpoints use the provided settings
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    from gateflow.api.routers import trigger

    app.include_router(trigger.router)
    return app
