"""Caller-facing facade over the reconciliation engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..configuration import ConfigurationBundle
from ..errors import NotInstalled, PathTraversal
from .drift import DriftDetector, DriftReport
from .location import DestinationChoice, detect_installation, resolve_destination
from .manifest import ManifestStore
from .operations import ReconcileResult, RollbackResult, UninstallResult
from .paths import resolve_inside
from .pruner import prune_empty_directories
from .reconciler import Reconciler
from .rollback import RollbackController
from .settings import InstallSettings

logger = logging.getLogger("rulesync.sync.client")


@dataclass
class InstallStatus:
    """Installation state of one destination."""

    installed: bool
    location: Optional[DestinationChoice] = None
    manifest_path: Optional[Path] = None
    content_identifier: Optional[str] = None
    git_hash: Optional[str] = None
    git_tag: Optional[str] = None
    installed_at: Optional[str] = None
    file_count: Optional[int] = None
    has_backup: bool = False

    @property
    def version(self) -> Optional[str]:
        if self.git_tag:
            return self.git_tag
        if self.git_hash:
            return self.git_hash[:7]
        if self.content_identifier:
            return self.content_identifier[:12]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "installed": self.installed,
            "location": self.location.value if self.location else None,
            "manifest_path": str(self.manifest_path) if self.manifest_path else None,
            "content_identifier": self.content_identifier,
            "version": self.version,
            "git_hash": self.git_hash,
            "git_tag": self.git_tag,
            "installed_at": self.installed_at,
            "file_count": self.file_count,
            "has_backup": self.has_backup,
        }


@dataclass
class TrackedFile:
    """A tracked destination file as listed from the manifest."""

    path: Path
    relative_path: str
    installed_at: str
    checksum: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "relative_path": self.relative_path,
            "installed_at": self.installed_at,
            "checksum": self.checksum,
        }


class InstallClient:
    """Entry point used by the CLI or by other programs.

    ``package_root`` is the directory the content tree lives in; manifest
    entries record their source relative to it, which is what rollback uses
    to re-copy files.
    """

    def __init__(self, package_root: Path, settings: Optional[InstallSettings] = None):
        self.package_root = package_root
        self.settings = settings or InstallSettings()
        self.store = ManifestStore(self.settings.manifest_name, self.settings.backup_name)
        self.reconciler = Reconciler(self.settings, package_root, self.store)
        self.rollback_controller = RollbackController(
            package_root, self.store, self.settings.managed_directories
        )
        self.drift_detector = DriftDetector(self.store)

    @classmethod
    def from_bundle(cls, bundle: ConfigurationBundle) -> "InstallClient":
        return cls(bundle.package_root, InstallSettings.from_bundle(bundle))

    @property
    def source_root(self) -> Path:
        return self.package_root / self.settings.source_dir

    def destination_for(
        self,
        location: Optional[DestinationChoice] = None,
        *,
        cwd: Optional[Path] = None,
        home: Optional[Path] = None,
    ) -> Path:
        return resolve_destination(
            location or self.settings.location,
            cwd=cwd,
            home=home,
            dirname=self.settings.destination_dirname,
        )

    def detect_location(
        self, *, cwd: Optional[Path] = None, home: Optional[Path] = None
    ) -> Optional[DestinationChoice]:
        """Return the destination recorded by a previous install, if any."""
        return detect_installation(
            self.store, cwd=cwd, home=home, dirname=self.settings.destination_dirname
        )

    def reconcile(
        self,
        source_root: Optional[Path] = None,
        destination_root: Optional[Path] = None,
        location: Optional[DestinationChoice] = None,
    ) -> ReconcileResult:
        """Install or update the managed files in ``destination_root``."""
        choice = location or self.settings.location
        source = source_root or self.source_root
        destination = destination_root or self.destination_for(choice)
        previous = self.store.load(destination)
        return self.reconciler.reconcile(source, destination, previous, choice)

    def rollback(self, destination_root: Path) -> RollbackResult:
        return self.rollback_controller.rollback(destination_root)

    def status(self, destination_root: Path) -> InstallStatus:
        manifest = self.store.load(destination_root)
        if manifest is None:
            return InstallStatus(installed=False)
        return InstallStatus(
            installed=True,
            location=manifest.selected_location,
            manifest_path=self.store.manifest_path(destination_root),
            content_identifier=manifest.content_identifier or None,
            git_hash=manifest.git_hash,
            git_tag=manifest.git_tag,
            installed_at=manifest.installed_at,
            file_count=len(manifest.files),
            has_backup=self.store.backup_path(destination_root).exists(),
        )

    def list_tracked_files(self, destination_root: Path) -> List[TrackedFile]:
        manifest = self.store.load(destination_root)
        if manifest is None:
            return []
        return [
            TrackedFile(
                path=destination_root / rel_path,
                relative_path=rel_path,
                installed_at=entry.installed_at,
                checksum=entry.checksum,
            )
            for rel_path, entry in sorted(manifest.files.items())
        ]

    def verify(self, destination_root: Path) -> DriftReport:
        return self.drift_detector.check(destination_root)

    def uninstall(self, destination_root: Path) -> UninstallResult:
        """Remove every tracked file, then the manifest and its backup.

        Per-file failures are collected rather than raised so one locked file
        does not leave the rest installed.
        """
        manifest = self.store.load(destination_root)
        if manifest is None:
            raise NotInstalled(
                f"No manifest found in {destination_root}; cannot determine which files "
                "were installed.",
                path=self.store.manifest_path(destination_root),
            )

        result = UninstallResult()
        for rel_path in sorted(manifest.files):
            try:
                target = resolve_inside(destination_root, rel_path)
                target.unlink()
            except FileNotFoundError:
                result.not_found += 1
                logger.info("Not found: %s", rel_path)
                continue
            except (PathTraversal, OSError) as exc:
                result.errors.append(f"{rel_path}: {exc}")
                logger.error("Failed to remove %s: %s", rel_path, exc)
                continue
            result.removed += 1
            logger.debug("Removed %s", rel_path)

        for managed in self.settings.managed_directories:
            result.pruned_directories += len(prune_empty_directories(destination_root / managed))

        try:
            self.store.delete(destination_root)
            self.store.discard_backup(destination_root)
        except OSError as exc:
            logger.warning("Failed to remove manifest files in %s: %s", destination_root, exc)
            result.errors.append(f"manifest: {exc}")

        result.message = f"{result.removed} file(s) removed"
        if result.not_found:
            result.message += f", {result.not_found} not found"
        if result.errors:
            result.message += f", {len(result.errors)} error(s)"
        logger.info("Uninstall of %s: %s", destination_root, result.message)
        return result


__all__ = ["InstallClient", "InstallStatus", "TrackedFile"]
