"""Cross-cutting primitives: logging, errors, settings and version helpers."""

from ucd_spine.core.errors import ErrorCategory, ErrorContext, UcdSpineError
from ucd_spine.core.logging import LogContext, configure_logging, get_logger
from ucd_spine.core.settings import UcdSpineSettings, get_settings
from ucd_spine.core.versions import is_valid_version

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "UcdSpineError",
    "LogContext",
    "configure_logging",
    "get_logger",
    "UcdSpineSettings",
    "get_settings",
    "is_valid_version",
]
