from __future__ import annotations

import logging
from pathlib import Path


DEFAULT_LOG_FILE = Path(".streamguard") / "streamguard.log"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ROOT = "streamguard"
_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def resolve_log_level(level: str) -> int:
    return _LEVELS.get((level or "INFO").upper().strip(), logging.INFO)


def configure_logging(
    *,
    level: str = "INFO",
    log_file: str | Path | None = None,
    enable_file: bool = True,
) -> Path | None:
    """
    Console handler at `level`, plus a DEBUG file handler unless disabled.
    urllib3 connection-pool chatter is only let through at DEBUG.
    """
    console_level = resolve_log_level(level)

    logger = logging.getLogger(_ROOT)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    logging.getLogger("urllib3").setLevel(logging.DEBUG if console_level <= logging.DEBUG else logging.WARNING)

    file_path: Path | None = None
    if enable_file:
        file_path = Path(log_file) if log_file else DEFAULT_LOG_FILE
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return file_path


def get_logger(name: str) -> logging.Logger:
    if name == _ROOT or name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT}.{name}")
