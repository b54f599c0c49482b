"""Best-effort removal of directories emptied by uninstall or reconciliation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

logger = logging.getLogger("rulesync.sync.pruner")


def prune_empty_directories(directory: Path) -> List[Path]:
    """Remove empty directories under ``directory``, depth-first.

    ``directory`` itself is removed too when nothing is left in it. Failures
    are swallowed; this is cosmetic cleanup only. Returns the removed paths.
    """
    removed: List[Path] = []
    _prune(directory, removed)
    return removed


def _prune(directory: Path, removed: List[Path]) -> None:
    if directory.is_symlink() or not directory.is_dir():
        return

    try:
        children = sorted(directory.iterdir())
    except OSError as exc:
        logger.debug("Cannot list %s: %s", directory, exc)
        return

    for child in children:
        if child.is_dir() and not child.is_symlink():
            _prune(child, removed)

    try:
        if any(directory.iterdir()):
            return
        directory.rmdir()
    except OSError as exc:
        logger.debug("Leaving directory %s in place: %s", directory, exc)
        return

    removed.append(directory)
    logger.debug("Removed empty directory %s", directory)


__all__ = ["prune_empty_directories"]
