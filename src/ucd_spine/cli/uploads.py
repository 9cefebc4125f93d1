"""
CLI: ``ucd-spine uploads``: submit archives and track upload workflows.
"""

from __future__ import annotations

from pathlib import Path

import typer

from ucd_spine.cli.utils import build_runtime, console, output, run_async
from ucd_spine.orchestration.models import StepRecord
from ucd_spine.workflows.archive import is_gzip
from ucd_spine.workflows.submission import SubmissionReceipt, WorkflowStatusView

app = typer.Typer(no_args_is_help=True)


@app.command("submit")
def submit(
    version: str = typer.Argument(..., help="Unicode version, X.Y.Z"),
    archive: Path = typer.Argument(..., exists=True, dir_okay=False, help="Tar or tar.gz file"),
    workflow_id: str | None = typer.Option(None, "--id", help="Explicit workflow id."),
    run: bool = typer.Option(False, "--run", help="Run the workflow right away."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Store an archive and queue its upload workflow."""
    data = archive.read_bytes()
    content_type = "application/gzip" if is_gzip(data) else "application/x-tar"
    runtime = build_runtime()

    async def _submit() -> SubmissionReceipt | WorkflowStatusView:
        try:
            receipt = await runtime.submitter.submit(
                version, data, content_type, workflow_id=workflow_id
            )
            if not run:
                return receipt
            return WorkflowStatusView.from_instance(await runtime.engine.run(receipt.workflow_id))
        finally:
            await runtime.aclose()

    result = run_async(_submit())
    output(result, as_json=json_out, title="Upload")
    if isinstance(result, WorkflowStatusView) and result.status == "errored":
        raise typer.Exit(code=1)


@app.command("run")
def run_workflow(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Start or resume a workflow and wait for it to finish."""
    runtime = build_runtime()

    async def _run() -> WorkflowStatusView:
        try:
            return WorkflowStatusView.from_instance(await runtime.engine.run(workflow_id))
        finally:
            await runtime.aclose()

    view = run_async(_run())
    output(view, as_json=json_out, title=f"Workflow: {workflow_id}")
    if view.status == "errored":
        raise typer.Exit(code=1)


@app.command("status")
def status(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    steps: bool = typer.Option(False, "--steps", help="Also list recorded steps."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show a workflow's state, output and error."""
    runtime = build_runtime()

    async def _status() -> tuple[WorkflowStatusView, list[StepRecord]]:
        try:
            view = runtime.submitter.status(workflow_id)
            return view, runtime.engine.store.list_steps(workflow_id) if steps else []
        finally:
            await runtime.aclose()

    view, records = run_async(_status())
    output(view, as_json=json_out, title=f"Workflow: {workflow_id}")
    if not steps or json_out:
        return
    if not records:
        console.print("[dim]No steps recorded yet.[/dim]")
        return
    output(
        [
            {"step": r.step_name, "attempts": r.attempts, "recorded_at": r.recorded_at}
            for r in records
        ],
        title="Steps",
    )
