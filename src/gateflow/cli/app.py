"""
Root Typer application for the gateflow CLI.

Commands:

    gateflow list                      workflow variants
    gateflow show NAME [--json]        steps of one variant
    gateflow run NAME [--url URL] [--timeout S] [--json]
    gateflow serve [--host] [--port] [--reload]

``run`` executes one invocation in-process with the configured record
store and exits 1 when the run fails. Logs go to stderr so ``--json``
output stays machine-readable.
"""

from __future__ import annotations

import asyncio
import sys

import typer

from gateflow import __version__
from gateflow.cli.utils import console, fail, print_dict, print_error, print_json, print_table
from gateflow.connectors.fetcher import ExternalFetcher
from gateflow.connectors.store import build_store, close_store
from gateflow.core.errors import ConfigError
from gateflow.core.logging import configure_logging
from gateflow.core.settings import get_settings
from gateflow.orchestration.definitions import get_workflow, list_workflows
from gateflow.orchestration.workflow import Workflow
from gateflow.orchestration.workflow_runner import WorkflowResult, WorkflowRunner

app = typer.Typer(
    name="gateflow",
    help="gateflow — run the fetch / shape / persist request workflow.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"gateflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for workflow events."),
) -> None:
    """gateflow CLI — inspect and run workflow variants."""
    configure_logging(level=log_level, json_format=False, stream=sys.stderr)


# ── Inspection ───────────────────────────────────────────────────────────


@app.command("list")
def list_command(json_out: bool = typer.Option(False, "--json")) -> None:
    """List the available workflow variants."""
    rows = []
    for name in list_workflows():
        workflow = get_workflow(name)
        rows.append(
            {
                "name": name,
                "steps": " → ".join(s.step_type.value for s in workflow.steps),
                "persists": workflow.persists,
                "url": workflow.fetch_step.url,
                "description": workflow.description,
            }
        )
    if json_out:
        print_json(rows)
        return
    print_table(rows, title="Workflows")


def _load(name: str) -> Workflow:
    try:
        return get_workflow(name)
    except ConfigError as e:
        fail(e.message)


@app.command("show")
def show_command(
    name: str = typer.Argument(..., help="Workflow name"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show a workflow's steps and run policy."""
    workflow = _load(name)
    if json_out:
        print_json(workflow.to_dict())
        return

    print_dict(
        {
            "description": workflow.description,
            "timeout_seconds": workflow.timeout_seconds,
            "output_path": workflow.output_path,
        },
        title=f"Workflow: {workflow.name}",
    )
    rows = []
    for step in workflow.steps:
        detail = step.to_dict()
        config = {k: v for k, v in detail.items() if k not in ("name", "type")}
        rows.append({"step": step.name, "type": step.step_type.value, "config": config})
    print_table(rows, title="Steps")


# ── Execution ────────────────────────────────────────────────────────────


def make_fetcher() -> ExternalFetcher:
    """Fetcher used by ``run`` (tests swap in a mock transport here)."""
    return ExternalFetcher()


async def _execute(workflow: Workflow) -> WorkflowResult:
    settings = get_settings()
    store = build_store(settings) if workflow.persists else None
    try:
        async with make_fetcher() as fetcher:
            runner = WorkflowRunner(fetcher=fetcher, store=store)
            return await runner.execute(workflow)
    finally:
        await close_store(store)


@app.command("run")
def run_command(
    name: str = typer.Argument(..., help="Workflow name"),
    url: str | None = typer.Option(None, "--url", help="Override the upstream URL"),
    timeout: float | None = typer.Option(None, "--timeout", help="Override the run timeout (seconds)"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run one invocation of a workflow and print its output."""
    workflow = _load(name)
    try:
        workflow = workflow.with_overrides(upstream_url=url, timeout_seconds=timeout)
    except ConfigError as e:
        fail(e.message)

    result = asyncio.run(_execute(workflow))

    if json_out:
        print_json(result.to_dict())
    elif result.succeeded:
        print_json(result.output)
        print_table(
            [
                {
                    "step": s.step_name,
                    "status": s.status,
                    "duration_ms": round((s.duration_seconds or 0) * 1000, 1),
                }
                for s in result.step_executions
            ],
            title=f"Run {result.run_id}",
        )

    if not result.succeeded:
        print_error(result.error, step=result.error_step)
        raise typer.Exit(code=1)


# ── Server ───────────────────────────────────────────────────────────────


@app.command("serve")
def serve_command(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
) -> None:
    """Start the HTTP server for the configured workflow."""
    import uvicorn

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    console.print(f"[bold green]Starting gateflow[/bold green] ({settings.workflow}) on {host}:{port}")
    uvicorn.run(
        "gateflow.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )
