"""
CLI utility helpers: output formatting and runtime wiring.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any, NoReturn, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from ucd_spine.cache.invalidator import CacheInvalidator, HttpPurgeBackend
from ucd_spine.core.errors import UcdSpineError
from ucd_spine.core.settings import UcdSpineSettings, get_settings
from ucd_spine.manifests.refresh import ManifestRefresher
from ucd_spine.manifests.store import ManifestStore
from ucd_spine.orchestration.engine import WorkflowEngine
from ucd_spine.orchestration.state_store import SQLiteWorkflowStateStore
from ucd_spine.storage import BlobStore, create_blob_store
from ucd_spine.upstream.crawler import FileTreeCrawler
from ucd_spine.upstream.discovery import VersionDiscoverer
from ucd_spine.upstream.listing import DirectoryLister, HttpDirectoryLister
from ucd_spine.workflows.manifest_upload import (
    MANIFEST_UPLOAD,
    ManifestUploadWorkflow,
    UploadConfig,
)
from ucd_spine.workflows.submission import ArchiveSubmitter

console = Console()
err_console = Console(stderr=True)


# ── Runtime wiring ───────────────────────────────────────────────────────


@dataclass
class Runtime:
    """Everything a command needs, built from settings."""

    settings: UcdSpineSettings
    blobs: BlobStore
    manifests: ManifestStore
    engine: WorkflowEngine
    submitter: ArchiveSubmitter
    purge_backend: HttpPurgeBackend
    state_store: SQLiteWorkflowStateStore

    async def aclose(self) -> None:
        await self.purge_backend.aclose()
        self.state_store.close()


def build_runtime(settings: UcdSpineSettings | None = None) -> Runtime:
    settings = settings or get_settings()
    blobs = create_blob_store(settings)
    store = SQLiteWorkflowStateStore.connect(settings.resolved_state_db_path)
    config = UploadConfig.from_settings(settings)

    purge_backend = HttpPurgeBackend(settings.api_origin_for(), task_key=settings.task_key)
    invalidator = CacheInvalidator(purge_backend, settings.api_origin_for())

    engine = WorkflowEngine(store)
    engine.register(MANIFEST_UPLOAD, ManifestUploadWorkflow(blobs, invalidator, config))
    submitter = ArchiveSubmitter(blobs, engine, settings.max_archive_bytes)
    return Runtime(
        settings=settings,
        blobs=blobs,
        manifests=ManifestStore(blobs),
        engine=engine,
        submitter=submitter,
        purge_backend=purge_backend,
        state_store=store,
    )


@asynccontextmanager
async def upstream_lister(settings: UcdSpineSettings) -> AsyncIterator[DirectoryLister]:
    async with HttpDirectoryLister(
        user_agent=settings.user_agent, timeout=settings.http_timeout_seconds
    ) as lister:
        yield lister


def make_refresher(runtime: Runtime, lister: DirectoryLister) -> ManifestRefresher:
    settings = runtime.settings
    return ManifestRefresher(
        VersionDiscoverer(lister, settings.upstream_base_url),
        FileTreeCrawler(lister, settings.upstream_base_url),
        runtime.manifests,
        batch_size=settings.crawl_batch_size,
        batch_delay_seconds=settings.crawl_batch_delay_seconds,
        excluded_extensions=settings.excluded_extensions,
        submitter=runtime.submitter,
    )


T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning ucd-spine errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except UcdSpineError as e:
        fail(e)


def fail(error: UcdSpineError | str, code: int = 1) -> NoReturn:
    if isinstance(error, UcdSpineError):
        err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    else:
        err_console.print(f"[bold red]Error[/bold red]: {error}")
    raise typer.Exit(code=code)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump(by_alias=True)
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a dict, object or list of them to the terminal."""
    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list | tuple):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        _print_table([_to_dict(d) for d in data], title=title)
    else:
        _print_dict(_to_dict(data), title=title)


def output_values(values: list[str], *, as_json: bool = False, title: str = "") -> None:
    """Render a flat list of strings."""
    if as_json:
        console.print_json(json.dumps(values))
        return
    if not values:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_header=False)
    table.add_column("value")
    for value in values:
        table.add_row(value)
    console.print(table)


def _print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    table = Table(title=title or None)
    columns = list(rows[0].keys())
    for col in columns:
        table.add_column(col)
    for row in rows:
        table.add_row(*(_cell(row.get(col)) for col in columns))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    table = Table(title=title or None, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(str(key), _cell(value))
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return str(value)
