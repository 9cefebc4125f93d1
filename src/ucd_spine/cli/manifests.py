"""
CLI: ``ucd-spine manifests``: crawl, refresh and inspect manifests.
"""

from __future__ import annotations

import typer

from ucd_spine.cli.utils import (
    build_runtime,
    console,
    fail,
    make_refresher,
    output,
    output_values,
    run_async,
    upstream_lister,
)
from ucd_spine.core.errors import InvalidVersionError
from ucd_spine.core.versions import is_valid_version
from ucd_spine.manifests.models import Manifest
from ucd_spine.manifests.refresh import RefreshReport

app = typer.Typer(no_args_is_help=True)


def _check_version(version: str) -> None:
    if not is_valid_version(version):
        fail(InvalidVersionError(version, expected="X.Y[.Z][-UpdateN]"))


@app.command("crawl")
def crawl(
    version: str = typer.Argument(..., help="Unicode version, e.g. 16.0.0"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Crawl one version upstream and print its manifest (nothing is stored)."""
    _check_version(version)
    runtime = build_runtime()

    async def _crawl() -> Manifest:
        try:
            async with upstream_lister(runtime.settings) as lister:
                return await make_refresher(runtime, lister).build_manifest(version)
        finally:
            await runtime.aclose()

    manifest = run_async(_crawl())
    if json_out:
        output(manifest, as_json=True)
    else:
        output_values(manifest.expected_files, title=f"{version}: {manifest.file_count} files")


@app.command("refresh")
def refresh(
    versions: list[str] | None = typer.Option(
        None, "--version", "-v", help="Version to refresh (repeatable). Default: all upstream."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Build manifests without writing."),
    via_workflow: bool = typer.Option(
        False, "--via-workflow", help="Publish through the upload workflow."
    ),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Rebuild manifests from upstream and publish the ones that changed."""
    for version in versions or []:
        _check_version(version)
    runtime = build_runtime()

    async def _refresh() -> RefreshReport:
        try:
            async with upstream_lister(runtime.settings) as lister:
                return await make_refresher(runtime, lister).refresh(
                    versions=versions or None, dry_run=dry_run, via_workflow=via_workflow
                )
        finally:
            await runtime.aclose()

    report = run_async(_refresh())
    if json_out:
        output(report, as_json=True)
    else:
        title = "Dry run result" if dry_run else "Refresh result"
        console.print(
            f"[bold]{title}[/bold]  uploaded={report.uploaded} skipped={report.skipped} "
            f"errors={len(report.errors)}"
        )
        if report.versions:
            output(report.versions, title="Versions")
        if report.errors:
            output(report.errors, title="Errors")
    if not report.success:
        raise typer.Exit(code=1)


@app.command("list")
def list_manifests(json_out: bool = typer.Option(False, "--json")) -> None:
    """List versions that have stored manifests or uploaded files."""
    runtime = build_runtime()

    async def _list() -> list[str]:
        try:
            return await runtime.manifests.list()
        finally:
            await runtime.aclose()

    output_values(run_async(_list()), as_json=json_out, title="Stored versions")


@app.command("show")
def show(
    version: str = typer.Argument(..., help="Unicode version"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the stored manifest for a version."""
    _check_version(version)
    runtime = build_runtime()

    async def _get() -> Manifest | None:
        try:
            return await runtime.manifests.get(version)
        finally:
            await runtime.aclose()

    manifest = run_async(_get())
    if manifest is None:
        fail(f"No manifest stored for {version}")
    if json_out:
        output(manifest, as_json=True)
    else:
        output_values(manifest.expected_files, title=f"{version}: {manifest.file_count} files")
