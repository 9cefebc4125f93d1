"""Settings for ucd-spine.

All fields can be set via ``UCD_SPINE_*`` environment variables (e.g.
``UCD_SPINE_BLOB_BACKEND=s3``) or a ``.env`` file in the working
directory. Unknown variables are ignored so a shared ``.env`` does not
break startup.

Examples:
    >>> from ucd_spine.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.crawl_batch_size
    5
    >>> settings.api_origin_for()
    'http://localhost:8787'
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024

_API_ORIGINS = {
    "production": "https://api.ucdjs.dev",
    "preview": "https://preview.api.ucdjs.dev",
    "local": "http://localhost:8787",
}


class Environment(str, Enum):
    PRODUCTION = "production"
    PREVIEW = "preview"
    LOCAL = "local"


class BlobBackend(str, Enum):
    MEMORY = "memory"
    LOCAL = "local"
    S3 = "s3"


class UcdSpineSettings(BaseSettings):
    """ucd-spine configuration.

    Fields
    ──────
    environment        : Deployment environment, selects the purge origin
    upstream_base_url  : Root of the upstream UCD directory index
    blob_backend       : Where archives, files and manifests are stored
    state_db_path      : SQLite file holding workflow execution records
    crawl_*            : Batch size and politeness delay for refresh crawls
    upload_*           : Batch size and retry policy of the upload step
    """

    model_config = SettingsConfigDict(
        env_prefix="UCD_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Meta ─────────────────────────────────────────────────────
    environment: Environment = Environment.LOCAL

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = Field(
        default=None, description="None selects JSON when stdout is not a tty"
    )

    # ── Storage ──────────────────────────────────────────────────
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".ucd-spine",
        description="Persistent data directory",
    )
    blob_backend: BlobBackend = BlobBackend.LOCAL
    blob_root: Path | None = Field(
        default=None, description="Root for the local blob backend (default: data_dir/blobs)"
    )
    s3_bucket: str | None = None
    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    state_db_path: Path | None = Field(
        default=None, description="Workflow state database (default: data_dir/workflows.db)"
    )

    # ── Upstream ─────────────────────────────────────────────────
    upstream_base_url: str = "https://unicode.org/Public"
    user_agent: str = "ucd-spine (https://github.com/ucdjs/ucd)"
    http_timeout_seconds: float = 30.0

    # ── Crawl ────────────────────────────────────────────────────
    crawl_batch_size: int = Field(default=5, ge=1)
    crawl_batch_delay_seconds: float = Field(default=0.5, ge=0)
    excluded_extensions: list[str] = Field(default_factory=lambda: [".zip", ".pdf"])

    # ── Upload workflow ──────────────────────────────────────────
    upload_batch_size: int = Field(default=20, ge=1)
    upload_max_attempts: int = Field(default=3, ge=1)
    upload_retry_base_delay_seconds: float = Field(default=5.0, ge=0)
    upload_timeout_seconds: float = Field(default=300.0, gt=0)
    max_archive_bytes: int = Field(default=10 * MIB, gt=0)

    # ── Cache purge ──────────────────────────────────────────────
    api_origin: str | None = None
    task_key: str | None = None

    @field_validator("upstream_base_url", "api_origin")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        return value.rstrip("/") if value else value

    @field_validator("excluded_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in (v.lower() for v in value)]

    @property
    def resolved_blob_root(self) -> Path:
        return self.blob_root or self.data_dir / "blobs"

    @property
    def resolved_state_db_path(self) -> Path:
        return self.state_db_path or self.data_dir / "workflows.db"

    def api_origin_for(self) -> str:
        """Origin whose version-scoped routes get purged after an upload."""
        if self.api_origin:
            return self.api_origin
        return _API_ORIGINS[self.environment.value]


_settings_cache: dict[str, UcdSpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> UcdSpineSettings:
    """Load, validate, and cache a :class:`UcdSpineSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = UcdSpineSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings (tests and CLI overrides)."""
    _settings_cache.clear()


__all__ = [
    "MIB",
    "Environment",
    "BlobBackend",
    "UcdSpineSettings",
    "get_settings",
    "clear_settings_cache",
]
