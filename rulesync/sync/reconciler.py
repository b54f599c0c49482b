"""Reconcile a content tree into a destination directory."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Set

from ..errors import IOFailure, RulesyncError, SourceUnavailable
from .checksum import compute_content_identifier, compute_file_hash
from .conflict import ConflictResolver
from .enumerator import SourceEnumerator, SourceFile
from .location import DestinationChoice
from .manifest import InstallManifest, ManifestEntry, ManifestStore, utc_timestamp
from .operations import FileOperation, ReconcileResult, SyncAction
from .paths import resolve_inside
from .pruner import prune_empty_directories
from .revision import SourceRevision, read_source_revision
from .settings import InstallSettings

logger = logging.getLogger("rulesync.sync.reconciler")


class Reconciler:
    """Diffs a content tree against the previous manifest and applies the result.

    Guarantees:
    - An unchanged content tree (same content identifier) causes no writes.
    - Files that no manifest ever tracked are never deleted.
    - Any failure after the first write deletes the files this run created,
      restores the previous manifest, and re-raises.
    """

    def __init__(
        self,
        settings: InstallSettings,
        package_root: Path,
        store: Optional[ManifestStore] = None,
        enumerator: Optional[SourceEnumerator] = None,
    ):
        self.settings = settings
        self.package_root = package_root
        self.store = store or ManifestStore(settings.manifest_name, settings.backup_name)
        self.enumerator = enumerator or SourceEnumerator(
            settings.extensions, settings.managed_directories
        )

    def reconcile(
        self,
        source_root: Path,
        destination_root: Path,
        previous: Optional[InstallManifest] = None,
        location: DestinationChoice = DestinationChoice.LOCAL,
    ) -> ReconcileResult:
        """Bring ``destination_root`` in line with ``source_root``."""
        if not source_root.is_dir():
            raise SourceUnavailable(
                f"Source tree not found at {source_root}", path=source_root
            )

        sources = self.enumerator.enumerate(source_root)
        try:
            identifier = compute_content_identifier(
                (item.relative_path, compute_file_hash(item.absolute_path)) for item in sources
            )
        except OSError as exc:
            raise IOFailure(f"Failed to read source tree: {exc}", path=source_root) from exc

        if previous is not None and previous.content_identifier == identifier:
            message = f"Already up to date ({identifier[:12]})"
            logger.info(message)
            return ReconcileResult(
                status="current",
                message=message,
                manifest=previous,
                skipped=True,
            )

        revision = self._read_revision(source_root)
        new_manifest = InstallManifest(
            selected_location=location,
            content_identifier=identifier,
            git_hash=revision.git_hash,
            git_tag=revision.git_tag,
        )
        result = ReconcileResult(
            status="installed" if previous is None else "updated",
            message="",
            manifest=new_manifest,
        )
        if previous is not None:
            result.backup_created = self.store.backup(previous, destination_root)

        resolver = ConflictResolver(
            destination_root,
            self.settings.untracked_policy,
            destination_root / self.settings.conflict_backup_dir,
        )
        created: List[Path] = []

        try:
            destination_root.mkdir(parents=True, exist_ok=True)
            refused = self._apply_sources(
                sources, destination_root, previous, new_manifest, resolver, result, created
            )
            stale = self._remove_stale(destination_root, previous, new_manifest, result)
            self._count_preserved(destination_root, new_manifest, stale | refused, result)
            self.store.save(new_manifest, destination_root)
        except Exception as exc:
            logger.error("Reconciliation of %s failed: %s", destination_root, exc)
            self._undo(destination_root, previous, created)
            if isinstance(exc, RulesyncError):
                raise
            if isinstance(exc, OSError):
                raise IOFailure(
                    f"Reconciliation failed: {exc}", path=destination_root
                ) from exc
            raise

        self._prune(destination_root)

        result.message = result.stats.summary()
        logger.info(
            "Reconciled %s -> %s: %s", source_root, destination_root, result.message
        )
        return result

    def _apply_sources(
        self,
        sources: Iterable[SourceFile],
        destination_root: Path,
        previous: Optional[InstallManifest],
        new_manifest: InstallManifest,
        resolver: ConflictResolver,
        result: ReconcileResult,
        created: List[Path],
    ) -> Set[str]:
        """Copy every source file into place. Returns refused (untracked) keys."""
        tracked = previous.files if previous is not None else {}
        refused: Set[str] = set()

        for item in sources:
            rel_path = item.relative_path
            target = resolve_inside(destination_root, rel_path)

            if not (target.exists() or target.is_symlink()):
                self._copy(item.absolute_path, target)
                created.append(target)
                operation = FileOperation(rel_path, SyncAction.ADD)
            elif rel_path in tracked:
                self._check_drift(target, rel_path, tracked[rel_path].checksum, result)
                self._copy(item.absolute_path, target)
                operation = FileOperation(rel_path, SyncAction.UPDATE)
            else:
                resolution = resolver.resolve(rel_path)
                if resolution.action == "skip":
                    refused.add(rel_path)
                    result.apply(
                        FileOperation(rel_path, SyncAction.REFUSE_UNTRACKED, resolution.message)
                    )
                    continue
                self._copy(item.absolute_path, target)
                operation = FileOperation(
                    rel_path, SyncAction.OVERWRITE_UNTRACKED, resolution.message
                )

            new_manifest.files[rel_path] = ManifestEntry(
                source=self._source_key(item.absolute_path),
                checksum=compute_file_hash(target),
                installed_at=utc_timestamp(),
            )
            result.apply(operation)
            logger.debug("%s %s", operation.action.value, rel_path)

        return refused

    def _remove_stale(
        self,
        destination_root: Path,
        previous: Optional[InstallManifest],
        new_manifest: InstallManifest,
        result: ReconcileResult,
    ) -> Set[str]:
        if previous is None:
            return set()

        stale = set(previous.files) - set(new_manifest.files)
        for rel_path in sorted(stale):
            target = resolve_inside(destination_root, rel_path)
            if target.exists() or target.is_symlink():
                target.unlink()
                result.apply(FileOperation(rel_path, SyncAction.REMOVE))
                logger.debug("Removed stale file %s", rel_path)
            else:
                result.apply(FileOperation(rel_path, SyncAction.REMOVE_MISSING, "not found"))
                logger.info("Stale file already gone: %s", rel_path)
        return stale

    def _count_preserved(
        self,
        destination_root: Path,
        new_manifest: InstallManifest,
        excluded: Set[str],
        result: ReconcileResult,
    ) -> None:
        for rel_path in self._iter_user_files(destination_root):
            if rel_path in new_manifest.files or rel_path in excluded:
                continue
            if self.enumerator.is_eligible(Path(rel_path)):
                result.apply(FileOperation(rel_path, SyncAction.PRESERVE))

    def _iter_user_files(self, destination_root: Path) -> List[str]:
        found: List[str] = []
        for managed in self.settings.managed_directories:
            base = destination_root / managed
            if base.is_symlink() or not base.is_dir():
                continue
            for dirpath, dirnames, filenames in os.walk(base):
                dirnames.sort()
                for name in sorted(filenames):
                    path = Path(dirpath) / name
                    if path.is_symlink():
                        continue
                    found.append(path.relative_to(destination_root).as_posix())
        return found

    def _check_drift(
        self, target: Path, rel_path: str, recorded: str, result: ReconcileResult
    ) -> None:
        if target.is_symlink() or not target.is_file():
            result.stats.drifted += 1
            logger.warning("Tracked path %s is no longer a regular file; replacing it", rel_path)
        elif compute_file_hash(target) != recorded:
            result.stats.drifted += 1
            logger.warning("Tracked file %s was modified since install; overwriting", rel_path)

    def _undo(
        self,
        destination_root: Path,
        previous: Optional[InstallManifest],
        created: List[Path],
    ) -> None:
        """Delete files created by this run and put the previous manifest back."""
        for path in reversed(created):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.error("Could not remove %s during rollback: %s", path, exc)
        logger.warning("Rolled back %d newly added file(s)", len(created))

        # The manifest is saved last and atomically, so a failed run never wrote
        # one. Without a previous manifest, whatever is on disk stays as it is.
        if previous is not None:
            try:
                self.store.save(previous, destination_root)
            except (RulesyncError, OSError) as exc:
                logger.error(
                    "Could not restore previous manifest in %s: %s", destination_root, exc
                )

        self._prune(destination_root)

    def _prune(self, destination_root: Path) -> None:
        for managed in self.settings.managed_directories:
            prune_empty_directories(destination_root / managed)

    def _copy(self, source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        # Never write through a symlink at a managed path.
        if target.is_symlink():
            target.unlink()
        shutil.copy2(source, target)

    def _source_key(self, source: Path) -> str:
        return Path(os.path.relpath(source, self.package_root)).as_posix()

    def _read_revision(self, source_root: Path) -> SourceRevision:
        if not self.settings.record_git_metadata:
            return SourceRevision()
        return read_source_revision(source_root)


__all__ = ["Reconciler"]
