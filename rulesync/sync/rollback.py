"""Restore a destination from its backup manifest."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional, Sequence

from ..errors import IOFailure, NoBackupAvailable, PathTraversal
from .manifest import ManifestStore
from .operations import RollbackResult
from .paths import resolve_inside
from .pruner import prune_empty_directories

logger = logging.getLogger("rulesync.sync.rollback")


class RollbackController:
    """Puts the tracked state recorded in the backup manifest back in place.

    Files tracked now but not in the backup are deleted; files in the backup
    are re-copied from their recorded source under ``package_root``. A
    missing source is skipped with a warning so that the rest of the
    rollback still applies. User files are never touched.
    """

    def __init__(
        self,
        package_root: Path,
        store: Optional[ManifestStore] = None,
        managed_directories: Sequence[str] = (),
    ):
        self.package_root = package_root
        self.store = store or ManifestStore()
        self.managed_directories = list(managed_directories)

    def rollback(self, destination_root: Path) -> RollbackResult:
        backup = self.store.load_backup(destination_root)
        if backup is None:
            raise NoBackupAvailable(
                "No backup manifest available; run a fresh install instead.",
                path=self.store.backup_path(destination_root),
            )

        current = self.store.load(destination_root)
        result = RollbackResult()

        try:
            if current is not None:
                for rel_path in sorted(set(current.files) - set(backup.files)):
                    target = self._target(destination_root, rel_path, result)
                    if target is None:
                        continue
                    try:
                        target.unlink()
                    except FileNotFoundError:
                        continue
                    result.removed += 1
                    logger.debug("Removed %s", rel_path)

            for rel_path, entry in sorted(backup.files.items()):
                source = self.package_root / entry.source
                if not source.is_file():
                    logger.warning(
                        "Cannot restore %s: source %s no longer exists", rel_path, source
                    )
                    result.skipped.append(rel_path)
                    continue
                target = self._target(destination_root, rel_path, result)
                if target is None:
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                if target.is_symlink():
                    target.unlink()
                shutil.copy2(source, target)
                result.restored += 1
                logger.debug("Restored %s from %s", rel_path, entry.source)
        except OSError as exc:
            raise IOFailure(f"Rollback failed: {exc}", path=destination_root) from exc

        self.store.restore(destination_root)
        self.store.discard_backup(destination_root)

        for managed in self.managed_directories:
            prune_empty_directories(destination_root / managed)

        result.message = f"Restored {result.restored} file(s), removed {result.removed}"
        if result.skipped:
            result.message += f", {len(result.skipped)} skipped (source missing)"
        logger.info("Rollback of %s: %s", destination_root, result.message)
        return result

    def _target(
        self, destination_root: Path, rel_path: str, result: RollbackResult
    ) -> Optional[Path]:
        try:
            return resolve_inside(destination_root, rel_path)
        except PathTraversal as exc:
            logger.warning("Skipping %s during rollback: %s", rel_path, exc)
            result.skipped.append(rel_path)
            return None


__all__ = ["RollbackController"]
