"""Logging helpers for rulesync."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys
from typing import Optional, Union

LOG_SUBPATH = Path("logs") / "rulesync.log"
STRUCTURED_LOG_SUBPATH = Path("logs") / "rulesync.jsonl"
MAX_BYTES = 5 * 1024 * 1024  # 5 MB per log segment
BACKUP_COUNT = 3
REPO_ROOT = Path(__file__).resolve().parent.parent
FALLBACK_ROOT = REPO_ROOT / ".rulesync_runtime"


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "extra") and record.extra:
            log_entry["extra"] = record.extra
        return json.dumps(log_entry)


def setup_logging(
    log_root: Path,
    level: Union[str, int] = logging.WARNING,
    structured: bool = False,
    console: bool = True,
) -> Path:
    """Configure the ``rulesync`` logger.

    Args:
        log_root: Directory under which ``logs/`` is created.
        level: Logging level (string name or int constant).
        structured: Whether to also write JSON lines next to the text log.
        console: Whether to attach a stderr handler.

    Returns:
        Path to the primary (text) log file.
    """
    log_path = _resolve_log_path(log_root, LOG_SUBPATH)

    text_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(text_formatter)

    logger = logging.getLogger("rulesync")
    _reset_handlers(logger)
    logger.setLevel(_resolve_level(level))
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(text_formatter)
        logger.addHandler(console_handler)

    if structured:
        json_handler = RotatingFileHandler(
            _resolve_log_path(log_root, STRUCTURED_LOG_SUBPATH),
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        json_handler.setFormatter(JSONFormatter())
        logger.addHandler(json_handler)

    logger.propagate = False
    return log_path


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return int(level)


def _resolve_log_path(log_root: Path, subpath: Path) -> Path:
    primary = log_root / subpath
    try:
        primary.parent.mkdir(parents=True, exist_ok=True)
        return primary
    except PermissionError:
        fallback = FALLBACK_ROOT / subpath
        fallback.parent.mkdir(parents=True, exist_ok=True)
        print(
            f"[logging] Unable to write logs under '{log_root}'; "
            f"falling back to '{fallback.parent}'.",
            file=sys.stderr,
        )
        return fallback


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging_from_bundle(bundle, log_root: Optional[Path] = None) -> Path:
    """Configure logging from the ``logging`` section of a configuration bundle."""
    settings = bundle.merged.get("logging", {}) if bundle.merged else {}
    log_path = setup_logging(
        log_root or bundle.package_root,
        level=settings.get("level", "INFO"),
        structured=bool(settings.get("structured", False)),
    )
    bundle.log_path = log_path
    return log_path


__all__ = [
    "setup_logging",
    "setup_logging_from_bundle",
    "JSONFormatter",
    "LOG_SUBPATH",
    "STRUCTURED_LOG_SUBPATH",
    "FALLBACK_ROOT",
]
