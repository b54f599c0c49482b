"""Tests for logging utilities."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from rulesync import logging_utils
from rulesync.configuration import ConfigurationBundle


def _reset_logger() -> logging.Logger:
    logger = logging.getLogger("rulesync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    return logger


@pytest.fixture(autouse=True)
def _clean_logger():
    _reset_logger()
    yield
    _reset_logger()


def test_setup_logging_creates_rotating_file(tmp_path: Path):
    log_path = logging_utils.setup_logging(tmp_path, level="INFO", console=False)
    logger = logging.getLogger("rulesync")

    assert log_path == tmp_path / "logs" / "rulesync.log"
    assert log_path.exists()
    assert logger.level == logging.INFO

    file_handlers = [
        handler for handler in logger.handlers if isinstance(handler, RotatingFileHandler)
    ]
    assert len(file_handlers) == 1
    assert file_handlers[0].baseFilename == str(log_path)


def test_setup_logging_is_idempotent(tmp_path: Path):
    logger = logging.getLogger("rulesync")
    logging_utils.setup_logging(tmp_path, level="INFO")
    handler_count = len(logger.handlers)

    logging_utils.setup_logging(tmp_path, level="INFO")
    assert len(logger.handlers) == handler_count


def test_setup_logging_writes_structured_lines(tmp_path: Path):
    logging_utils.setup_logging(tmp_path, level="DEBUG", structured=True, console=False)

    logging.getLogger("rulesync.sync.reconciler").info("reconciled %d files", 3)
    for handler in logging.getLogger("rulesync").handlers:
        handler.flush()

    lines = (tmp_path / "logs" / "rulesync.jsonl").read_text(encoding="utf-8").splitlines()
    entry = json.loads(lines[-1])
    assert entry["level"] == "INFO"
    assert entry["logger"] == "rulesync.sync.reconciler"
    assert entry["message"] == "reconciled 3 files"


def test_setup_logging_falls_back_when_permission_denied(tmp_path: Path, monkeypatch):
    package_root = tmp_path / "pkg"
    primary_parent = package_root / "logs"
    original_mkdir = Path.mkdir

    def fake_mkdir(self, *args, **kwargs):
        if str(self).startswith(str(primary_parent)):
            raise PermissionError
        return original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fake_mkdir)
    fallback_root = tmp_path / "fallback"
    monkeypatch.setattr(logging_utils, "FALLBACK_ROOT", fallback_root)

    log_path = logging_utils.setup_logging(package_root, level="INFO", console=False)
    expected = fallback_root / "logs" / "rulesync.log"

    assert log_path == expected
    assert expected.exists()


def test_setup_logging_from_bundle_records_log_path(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(
        logging_utils,
        "setup_logging",
        lambda root, level, structured: root / "logs" / f"{level}-{structured}.log",
    )
    bundle = ConfigurationBundle(
        package_root=tmp_path,
        status="ready",
        merged={"logging": {"level": "DEBUG", "structured": True}},
    )

    log_path = logging_utils.setup_logging_from_bundle(bundle)

    assert log_path == tmp_path / "logs" / "DEBUG-True.log"
    assert bundle.log_path == log_path
