"""Install manifest model and persistence."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import ManifestCorrupt, ManifestPersistFailure, NoBackupAvailable
from .location import DestinationChoice
from .paths import is_managed_relative_path

logger = logging.getLogger("rulesync.sync.manifest")

MANIFEST_VERSION = "1.0"
DEFAULT_MANIFEST_NAME = ".rulesync-manifest.json"
DEFAULT_BACKUP_NAME = ".rulesync-manifest.backup.json"

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")
_GIT_HASH_RE = re.compile(r"^[0-9a-f]{40}$")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ManifestEntry:
    """One destination file written by the engine."""

    source: str  # Path relative to the package root
    checksum: str  # SHA-256 of the content that was written
    installed_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "installedAt": self.installed_at,
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestEntry":
        return cls(
            source=data["source"],
            checksum=data["checksum"],
            installed_at=data.get("installedAt", ""),
        )


@dataclass
class InstallManifest:
    """Record of everything the engine installed into one destination."""

    selected_location: DestinationChoice
    content_identifier: str
    version: str = MANIFEST_VERSION
    installed_at: str = field(default_factory=utc_timestamp)
    git_hash: Optional[str] = None
    git_tag: Optional[str] = None
    files: Dict[str, ManifestEntry] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "version": self.version,
            "selectedLocation": self.selected_location.value,
            "installedAt": self.installed_at,
            "contentIdentifier": self.content_identifier,
        }
        if self.git_hash:
            data["submoduleGitHash"] = self.git_hash
        if self.git_tag:
            data["submoduleGitTag"] = self.git_tag
        data["files"] = {path: entry.to_dict() for path, entry in sorted(self.files.items())}
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstallManifest":
        """Build a manifest from parsed JSON, raising ``ManifestCorrupt`` on bad shape."""
        validate_manifest_data(data)
        manifest = cls(
            selected_location=DestinationChoice(data.get("selectedLocation", "local")),
            content_identifier=data.get("contentIdentifier", ""),
            version=data["version"],
            installed_at=data.get("installedAt", ""),
            git_hash=data.get("submoduleGitHash"),
            git_tag=data.get("submoduleGitTag"),
        )
        for path, entry_data in data["files"].items():
            manifest.files[path] = ManifestEntry.from_dict(entry_data)
        return manifest


def validate_manifest_data(data: Any) -> None:
    """Reject anything that is not a well-formed manifest document."""
    if not isinstance(data, dict):
        raise ManifestCorrupt("manifest root is not an object")

    version = data.get("version")
    if not isinstance(version, str) or not version:
        raise ManifestCorrupt("missing or invalid 'version'")

    files = data.get("files")
    if not isinstance(files, dict):
        raise ManifestCorrupt("missing or invalid 'files'")

    location = data.get("selectedLocation", "local")
    if location not in {choice.value for choice in DestinationChoice}:
        raise ManifestCorrupt(f"unknown selectedLocation {location!r}")

    identifier = data.get("contentIdentifier")
    if identifier is not None and not (isinstance(identifier, str) and _SHA256_RE.match(identifier)):
        raise ManifestCorrupt("contentIdentifier is not a 64-character hex digest")

    git_hash = data.get("submoduleGitHash")
    if git_hash is not None and not (isinstance(git_hash, str) and _GIT_HASH_RE.match(git_hash)):
        raise ManifestCorrupt("submoduleGitHash is not a 40-character hex hash")

    git_tag = data.get("submoduleGitTag")
    if git_tag is not None and not isinstance(git_tag, str):
        raise ManifestCorrupt("submoduleGitTag must be a string")

    for path, entry in files.items():
        if not is_managed_relative_path(path):
            raise ManifestCorrupt(f"entry key {path!r} is not a relative path inside the destination")
        if not isinstance(entry, dict):
            raise ManifestCorrupt(f"entry {path!r} is not an object")
        if not isinstance(entry.get("source"), str):
            raise ManifestCorrupt(f"entry {path!r} has no source")
        checksum = entry.get("checksum")
        if not (isinstance(checksum, str) and _SHA256_RE.match(checksum)):
            raise ManifestCorrupt(f"entry {path!r} has an invalid checksum")


class ManifestStore:
    """Loads, saves, and backs up the manifest of a destination directory."""

    def __init__(
        self,
        manifest_name: str = DEFAULT_MANIFEST_NAME,
        backup_name: str = DEFAULT_BACKUP_NAME,
    ):
        self.manifest_name = manifest_name
        self.backup_name = backup_name

    def manifest_path(self, destination_root: Path) -> Path:
        return destination_root / self.manifest_name

    def backup_path(self, destination_root: Path) -> Path:
        return destination_root / self.backup_name

    def load(self, destination_root: Path) -> Optional[InstallManifest]:
        """Load the current manifest, or ``None`` when absent or invalid."""
        return self._read(self.manifest_path(destination_root))

    def load_backup(self, destination_root: Path) -> Optional[InstallManifest]:
        return self._read(self.backup_path(destination_root))

    def save(self, manifest: InstallManifest, destination_root: Path) -> None:
        """Persist the manifest via write-then-rename."""
        path = self.manifest_path(destination_root)
        try:
            _atomic_write_json(path, manifest.to_dict())
        except OSError as exc:
            raise ManifestPersistFailure(
                f"Failed to write manifest {path}: {exc}", path=path
            ) from exc
        logger.debug("Saved manifest to %s (%d files)", path, len(manifest.files))

    def backup(self, manifest: InstallManifest, destination_root: Path) -> bool:
        """Snapshot a manifest as the backup. Failure only costs the safety net."""
        path = self.backup_path(destination_root)
        try:
            _atomic_write_json(path, manifest.to_dict())
        except OSError as exc:
            logger.warning("Could not write manifest backup %s: %s", path, exc)
            return False
        logger.info("Backed up manifest to %s", path)
        return True

    def restore(self, destination_root: Path) -> InstallManifest:
        """Copy the backup manifest over the current one and return it."""
        backup = self.load_backup(destination_root)
        if backup is None:
            raise NoBackupAvailable(
                "No backup manifest available; run a fresh install instead.",
                path=self.backup_path(destination_root),
            )
        self.save(backup, destination_root)
        logger.info("Restored manifest from backup in %s", destination_root)
        return backup

    def discard_backup(self, destination_root: Path) -> bool:
        return _unlink_if_present(self.backup_path(destination_root))

    def delete(self, destination_root: Path) -> bool:
        return _unlink_if_present(self.manifest_path(destination_root))

    def _read(self, path: Path) -> Optional[InstallManifest]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return InstallManifest.from_dict(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ManifestCorrupt) as e:
            logger.warning("Ignoring unusable manifest %s: %s", path, e)
            return None


def _atomic_write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    temp_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(temp_path, path)
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink()


def _unlink_if_present(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


__all__ = [
    "MANIFEST_VERSION",
    "DEFAULT_MANIFEST_NAME",
    "DEFAULT_BACKUP_NAME",
    "ManifestEntry",
    "InstallManifest",
    "ManifestStore",
    "validate_manifest_data",
    "utc_timestamp",
]
