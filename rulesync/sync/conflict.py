"""Policies for untracked user files that occupy a managed path."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger("rulesync.sync.conflict")

DEFAULT_CONFLICT_BACKUP_DIR = ".rulesync_backups"


class UntrackedPolicy(str, Enum):
    """What to do when a source file lands on an untracked destination file."""
    OVERWRITE = "overwrite"
    BACKUP = "backup"
    REFUSE = "refuse"


@dataclass
class ConflictResolution:
    """Decision for one untracked file at a managed path."""

    relative_path: str
    action: str  # "overwrite", "skip"
    backup_path: Optional[Path] = None
    message: str = ""


class ConflictResolver:
    """Applies the configured policy to untracked files at managed paths."""

    def __init__(
        self,
        destination_root: Path,
        policy: UntrackedPolicy = UntrackedPolicy.OVERWRITE,
        backup_dir: Optional[Path] = None,
    ):
        self.destination_root = destination_root
        self.policy = policy
        self.backup_dir = backup_dir or destination_root / DEFAULT_CONFLICT_BACKUP_DIR

    def resolve(self, relative_path: str) -> ConflictResolution:
        if self.policy is UntrackedPolicy.REFUSE:
            logger.warning(
                "Left untracked file at managed path in place: %s", relative_path
            )
            return ConflictResolution(
                relative_path=relative_path,
                action="skip",
                message="untracked file left in place",
            )

        if self.policy is UntrackedPolicy.BACKUP:
            backup_path = self._create_backup(relative_path)
            logger.warning(
                "Overwrote untracked file at managed path: %s (saved to %s)",
                relative_path,
                backup_path,
            )
            return ConflictResolution(
                relative_path=relative_path,
                action="overwrite",
                backup_path=backup_path,
                message=f"backed up to {backup_path}",
            )

        logger.warning("Overwrote untracked file at managed path: %s", relative_path)
        return ConflictResolution(
            relative_path=relative_path,
            action="overwrite",
            message="overwrote untracked file at managed path",
        )

    def _create_backup(self, relative_path: str) -> Path:
        """Copy a user file aside before it gets overwritten."""
        source = self.destination_root / relative_path
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        rel = Path(relative_path)
        backup_path = self.backup_dir / rel.parent / f"{rel.stem}_{timestamp}{rel.suffix}"
        backup_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, backup_path)
        logger.info("Created backup: %s -> %s", source, backup_path)
        return backup_path


__all__ = [
    "DEFAULT_CONFLICT_BACKUP_DIR",
    "UntrackedPolicy",
    "ConflictResolution",
    "ConflictResolver",
]
