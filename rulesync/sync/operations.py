"""Operation records and result types for reconcile, rollback and uninstall."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .manifest import InstallManifest


class SyncAction(str, Enum):
    """What happened to one destination path."""
    ADD = "add"
    UPDATE = "update"
    OVERWRITE_UNTRACKED = "overwrite_untracked"
    REFUSE_UNTRACKED = "refuse_untracked"
    REMOVE = "remove"
    REMOVE_MISSING = "remove_missing"
    PRESERVE = "preserve"


@dataclass
class FileOperation:
    """A single applied (or deliberately skipped) file operation."""

    path: str  # Relative to the destination root
    action: SyncAction
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "path": self.path,
            "action": self.action.value,
        }
        if self.detail:
            result["detail"] = self.detail
        return result


@dataclass
class ReconcileStats:
    """Plain counters for one reconciliation."""

    added: int = 0
    updated: int = 0
    removed: int = 0
    missing: int = 0
    preserved: int = 0
    conflicts: int = 0
    drifted: int = 0

    @property
    def total_changes(self) -> int:
        return self.added + self.updated + self.removed

    def record(self, operation: FileOperation) -> None:
        action = operation.action
        if action in (SyncAction.ADD, SyncAction.OVERWRITE_UNTRACKED):
            self.added += 1
        elif action is SyncAction.UPDATE:
            self.updated += 1
        elif action is SyncAction.REMOVE:
            self.removed += 1
        elif action is SyncAction.REMOVE_MISSING:
            self.removed += 1
            self.missing += 1
        elif action is SyncAction.PRESERVE:
            self.preserved += 1
        elif action is SyncAction.REFUSE_UNTRACKED:
            self.conflicts += 1

    def summary(self) -> str:
        parts = []
        if self.added:
            parts.append(f"{self.added} added")
        if self.updated:
            parts.append(f"{self.updated} updated")
        if self.removed:
            parts.append(f"{self.removed} removed")
        if self.preserved:
            parts.append(f"{self.preserved} user files preserved")
        if self.conflicts:
            parts.append(f"{self.conflicts} untracked files left in place")
        return ", ".join(parts) if parts else "no changes"

    def to_dict(self) -> Dict[str, int]:
        return {
            "added": self.added,
            "updated": self.updated,
            "removed": self.removed,
            "missing": self.missing,
            "preserved": self.preserved,
            "conflicts": self.conflicts,
            "drifted": self.drifted,
        }


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation."""

    status: str  # "installed", "updated", "current"
    message: str
    manifest: Optional["InstallManifest"] = None
    stats: ReconcileStats = field(default_factory=ReconcileStats)
    operations: List[FileOperation] = field(default_factory=list)
    skipped: bool = False
    backup_created: bool = False

    def apply(self, operation: FileOperation) -> None:
        self.operations.append(operation)
        self.stats.record(operation)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "status": self.status,
            "message": self.message,
            "skipped": self.skipped,
            "backup_created": self.backup_created,
            "operations": [op.to_dict() for op in self.operations],
        }
        result.update(self.stats.to_dict())
        return result


@dataclass
class RollbackResult:
    """Outcome of restoring a destination from its backup manifest."""

    restored: int = 0
    removed: int = 0
    skipped: List[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "restored": self.restored,
            "removed": self.removed,
            "skipped": list(self.skipped),
            "message": self.message,
        }


@dataclass
class UninstallResult:
    """Outcome of removing every tracked file from a destination."""

    removed: int = 0
    not_found: int = 0
    errors: List[str] = field(default_factory=list)
    pruned_directories: int = 0
    message: str = ""

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "removed": self.removed,
            "not_found": self.not_found,
            "errors": list(self.errors),
            "pruned_directories": self.pruned_directories,
            "message": self.message,
        }


__all__ = [
    "SyncAction",
    "FileOperation",
    "ReconcileStats",
    "ReconcileResult",
    "RollbackResult",
    "UninstallResult",
]
