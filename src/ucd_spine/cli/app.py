"""
Root Typer application for the ucd-spine CLI.
"""

from __future__ import annotations

import sys

import typer
from typer import Typer

from ucd_spine.core.logging import configure_logging
from ucd_spine.core.settings import get_settings

app = Typer(
    name="ucd-spine",
    help="ucd-spine: Unicode Character Database manifest synchronization.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from ucd_spine import __version__

        typer.echo(f"ucd-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="Override UCD_SPINE_LOG_LEVEL."
    ),
) -> None:
    """ucd-spine CLI: discover versions, refresh manifests, ingest archives."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.json_logs,
        stream=sys.stderr,
        cache_loggers=False,
    )


# ── Sub-command registration ─────────────────────────────────────────────

from ucd_spine.cli.manifests import app as manifests_app  # noqa: E402
from ucd_spine.cli.uploads import app as uploads_app  # noqa: E402
from ucd_spine.cli.versions import app as versions_app  # noqa: E402

app.add_typer(versions_app, name="versions", help="Upstream version discovery.")
app.add_typer(manifests_app, name="manifests", help="Crawl, refresh and inspect manifests.")
app.add_typer(uploads_app, name="uploads", help="Submit archives and track upload workflows.")
