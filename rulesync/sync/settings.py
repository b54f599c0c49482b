"""Install settings derived from the runtime configuration."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..configuration import (
    DEFAULT_EXTENSIONS,
    DEFAULT_MANAGED_DIRECTORIES,
    ConfigurationBundle,
    Diagnostic,
)
from .conflict import DEFAULT_CONFLICT_BACKUP_DIR, UntrackedPolicy
from .location import DEFAULT_DESTINATION_DIRNAME, DestinationChoice
from .manifest import DEFAULT_BACKUP_NAME, DEFAULT_MANIFEST_NAME

logger = logging.getLogger("rulesync.sync.settings")

DEFAULT_SOURCE_DIR = "everything-claude-code"


@dataclass
class InstallSettings:
    """Settings for install, reconcile and rollback operations."""

    source_dir: str = DEFAULT_SOURCE_DIR
    destination_dirname: str = DEFAULT_DESTINATION_DIRNAME
    location: DestinationChoice = DestinationChoice.LOCAL
    managed_directories: Sequence[str] = tuple(DEFAULT_MANAGED_DIRECTORIES)
    extensions: Sequence[str] = tuple(DEFAULT_EXTENSIONS)
    untracked_policy: UntrackedPolicy = UntrackedPolicy.OVERWRITE
    conflict_backup_dir: str = DEFAULT_CONFLICT_BACKUP_DIR
    manifest_name: str = DEFAULT_MANIFEST_NAME
    backup_name: str = DEFAULT_BACKUP_NAME
    record_git_metadata: bool = True

    @classmethod
    def from_config(
        cls,
        config: Optional[Mapping[str, Any]],
        diagnostics: Optional[List[Diagnostic]] = None,
    ) -> "InstallSettings":
        raw: Dict[str, Any] = dict(config.get("install", {}) or {}) if config else {}

        location = _parse_enum(
            DestinationChoice, raw.get("location"), DestinationChoice.LOCAL, "install.location", diagnostics
        )
        policy = _parse_enum(
            UntrackedPolicy,
            raw.get("untracked_policy"),
            UntrackedPolicy.OVERWRITE,
            "install.untracked_policy",
            diagnostics,
        )

        return cls(
            source_dir=_clean_str(raw.get("source_dir"), DEFAULT_SOURCE_DIR),
            destination_dirname=_clean_str(raw.get("destination_dirname"), DEFAULT_DESTINATION_DIRNAME),
            location=location,
            managed_directories=_clean_list(raw.get("managed_directories"), DEFAULT_MANAGED_DIRECTORIES),
            extensions=_clean_list(raw.get("extensions"), DEFAULT_EXTENSIONS),
            untracked_policy=policy,
            conflict_backup_dir=_clean_str(raw.get("conflict_backup_dir"), DEFAULT_CONFLICT_BACKUP_DIR),
            manifest_name=_clean_str(raw.get("manifest_name"), DEFAULT_MANIFEST_NAME),
            backup_name=_clean_str(raw.get("backup_name"), DEFAULT_BACKUP_NAME),
            record_git_metadata=bool(raw.get("record_git_metadata", True)),
        )

    @classmethod
    def from_bundle(cls, bundle: ConfigurationBundle) -> "InstallSettings":
        return cls.from_config(bundle.merged, bundle.diagnostics)


def _clean_str(value: Any, default: str) -> str:
    cleaned = str(value).strip() if value is not None else ""
    return cleaned or default


def _clean_list(value: Any, default: Sequence[str]) -> tuple:
    if isinstance(value, str):
        value = [value]
    if not value:
        return tuple(default)
    cleaned = [str(item).strip() for item in value if str(item).strip()]
    return tuple(cleaned) if cleaned else tuple(default)


def _parse_enum(enum_cls, value, default, key: str, diagnostics: Optional[List[Diagnostic]]):
    if value is None:
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        message = f"'{key}' must be one of {allowed}; using '{default.value}'."
        logger.warning(message)
        if diagnostics is not None:
            diagnostics.append(Diagnostic(level="warning", message=message))
        return default


__all__ = ["DEFAULT_SOURCE_DIR", "InstallSettings"]
