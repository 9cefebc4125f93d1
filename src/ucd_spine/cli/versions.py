"""
CLI: ``ucd-spine versions``: upstream version discovery.
"""

from __future__ import annotations

import typer

from ucd_spine.cli.utils import output_values, run_async, upstream_lister
from ucd_spine.core.settings import get_settings
from ucd_spine.upstream.discovery import VersionDiscoverer

app = typer.Typer(no_args_is_help=True)


@app.command("discover")
def discover(
    base_url: str | None = typer.Option(None, "--base-url", help="Upstream index root."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List the Unicode versions published upstream."""
    settings = get_settings()

    async def _discover() -> list[str]:
        async with upstream_lister(settings) as lister:
            return await VersionDiscoverer(lister, base_url or settings.upstream_base_url).discover()

    versions = run_async(_discover())
    output_values(versions, as_json=json_out, title="Upstream versions")
