"""Error kinds surfaced by the reconciliation engine.

Convention:
- Recoverable conditions (a corrupt manifest, a vanished rollback source, an
  already-removed stale file) are logged at WARNING and absorbed where they
  occur. ``ManifestCorrupt`` exists so validation can signal the problem, but
  ``ManifestStore.load`` always converts it into "no prior installation".
- Everything else aborts the current top-level operation. When files were
  already mutated, the reconciler rolls back before re-raising.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional


class RulesyncError(Exception):
    """Base class for structured engine errors."""

    kind = "error"

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "path": str(self.path) if self.path else None,
        }


class SourceUnavailable(RulesyncError):
    """The content tree to enumerate is missing or is not a directory."""

    kind = "source_unavailable"


class ManifestCorrupt(RulesyncError):
    """A manifest file failed validation."""

    kind = "manifest_corrupt"


class PathTraversal(RulesyncError):
    """A destination-relative path resolves outside the destination root."""

    kind = "path_traversal"


class IOFailure(RulesyncError):
    """A filesystem operation failed; the ``OSError`` is kept as ``__cause__``."""

    kind = "io_failure"


class NoBackupAvailable(RulesyncError):
    """Rollback was requested but no backup manifest exists."""

    kind = "no_backup"


class ManifestPersistFailure(RulesyncError):
    """File operations succeeded but the new manifest could not be written."""

    kind = "manifest_persist_failure"


class NotInstalled(RulesyncError):
    """The destination carries no valid manifest."""

    kind = "not_installed"


__all__ = [
    "RulesyncError",
    "SourceUnavailable",
    "ManifestCorrupt",
    "PathTraversal",
    "IOFailure",
    "NoBackupAvailable",
    "ManifestPersistFailure",
    "NotInstalled",
]
