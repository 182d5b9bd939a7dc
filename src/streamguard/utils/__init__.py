from .logging import DEFAULT_LOG_FILE, configure_logging, get_logger, resolve_log_level
from .output import build_cli_payload, normalize_errors, render_payload, serialize_payload

__all__ = [
    "DEFAULT_LOG_FILE",
    "configure_logging",
    "get_logger",
    "resolve_log_level",
    "build_cli_payload",
    "normalize_errors",
    "render_payload",
    "serialize_payload",
]
