"""Drift detection: tracked files modified or deleted since install."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import NotInstalled, PathTraversal
from .checksum import compute_file_hash
from .manifest import ManifestStore
from .paths import resolve_inside

logger = logging.getLogger("rulesync.sync.drift")


@dataclass
class DriftReport:
    """Per-file comparison of the destination against its manifest."""

    destination: Path
    intact: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return bool(self.modified or self.missing)

    def summary(self) -> str:
        if not self.has_drift:
            return f"{len(self.intact)} tracked file(s), no drift detected"
        parts = []
        if self.modified:
            parts.append(f"{len(self.modified)} modified")
        if self.missing:
            parts.append(f"{len(self.missing)} missing")
        return "DRIFT: " + ", ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination": str(self.destination),
            "has_drift": self.has_drift,
            "intact": list(self.intact),
            "modified": list(self.modified),
            "missing": list(self.missing),
        }


class DriftDetector:
    """Compares on-disk checksums of tracked files with the recorded ones."""

    def __init__(self, store: Optional[ManifestStore] = None):
        self.store = store or ManifestStore()

    def check(self, destination_root: Path) -> DriftReport:
        manifest = self.store.load(destination_root)
        if manifest is None:
            raise NotInstalled(
                f"No installation found in {destination_root}", path=destination_root
            )

        report = DriftReport(destination=destination_root)
        for rel_path, entry in sorted(manifest.files.items()):
            try:
                target = resolve_inside(destination_root, rel_path)
            except PathTraversal as exc:
                logger.warning("Ignoring tracked path %s: %s", rel_path, exc)
                report.missing.append(rel_path)
                continue

            if target.is_symlink():
                report.modified.append(rel_path)
            elif not target.is_file():
                report.missing.append(rel_path)
            elif compute_file_hash(target) != entry.checksum:
                report.modified.append(rel_path)
            else:
                report.intact.append(rel_path)

        logger.info("Drift check of %s: %s", destination_root, report.summary())
        return report


__all__ = ["DriftReport", "DriftDetector"]
