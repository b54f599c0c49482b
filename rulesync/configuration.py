"""Configuration loading for rulesync.

Defaults ship in the repository ``config/`` directory; a package root may
override them with its own ``config/*.yml`` files. Problems are collected as
diagnostics instead of raised, so callers can decide how strict to be.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional, Tuple

import yaml

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = REPO_ROOT / "config"
PACKAGE_ROOT_ENV = "RULESYNC_PACKAGE_ROOT"

DiagnosticLevel = Literal["info", "warning", "error"]
ConfigurationStatus = Literal["ready", "missing", "invalid"]


SchemaSpec = Dict[str, Any]

DEFAULT_MANAGED_DIRECTORIES: List[str] = [
    "agents",
    "skills",
    "commands",
    "rules",
]
DEFAULT_EXTENSIONS: List[str] = [".md"]


CONFIG_SCHEMA: SchemaSpec = {
    "logging": {
        "type": dict,
        "schema": {
            "level": {"type": str, "default": "INFO"},
            "structured": {"type": bool, "default": False},
        },
        "default": {},
    },
    "install": {
        "type": dict,
        "schema": {
            "source_dir": {"type": str, "default": "everything-claude-code"},
            "destination_dirname": {"type": str, "default": ".cursor"},
            "location": {
                "type": str,
                "default": "local",
                "choices": ("local", "home"),
            },
            "managed_directories": {
                "type": list,
                "item_type": str,
                "default_factory": lambda: list(DEFAULT_MANAGED_DIRECTORIES),
            },
            "extensions": {
                "type": list,
                "item_type": str,
                "default_factory": lambda: list(DEFAULT_EXTENSIONS),
            },
            "untracked_policy": {
                "type": str,
                "default": "overwrite",
                "choices": ("overwrite", "backup", "refuse"),
            },
            "conflict_backup_dir": {"type": str, "default": ".rulesync_backups"},
            "manifest_name": {"type": str, "default": ".rulesync-manifest.json"},
            "backup_name": {"type": str, "default": ".rulesync-manifest.backup.json"},
            "record_git_metadata": {"type": bool, "default": True},
        },
        "default": {},
    },
}


@dataclass
class Diagnostic:
    """Represents a configuration validation or loading issue."""

    level: DiagnosticLevel
    message: str
    source: Optional[Path] = None


@dataclass
class ConfigurationBundle:
    """All configuration data rulesync needs at runtime."""

    package_root: Path
    status: ConfigurationStatus
    merged: Dict[str, Any] = field(default_factory=dict)
    repo_defaults: Dict[str, Any] = field(default_factory=dict)
    package_overrides: Dict[str, Any] = field(default_factory=dict)
    files_loaded: List[Path] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    log_path: Optional[Path] = None


def resolve_package_root(env: Optional[Mapping[str, str]] = None) -> Path:
    """Resolve the package root from the environment, defaulting to the cwd."""

    env_source = env or os.environ
    raw = env_source.get(PACKAGE_ROOT_ENV)
    if not raw:
        return Path.cwd()
    return Path(raw).expanduser()


def load_runtime_configuration(package_root: Optional[Path] = None) -> ConfigurationBundle:
    """Load repository defaults and package-root overrides."""

    resolved_root = package_root or resolve_package_root()
    diagnostics: List[Diagnostic] = []
    files_loaded: List[Path] = []

    repo_defaults, repo_files = _load_directory_configs(
        DEFAULT_CONFIG_DIR,
        diagnostics,
        label="repo defaults",
    )
    files_loaded.extend(repo_files)

    status: ConfigurationStatus = "ready"
    package_overrides: Dict[str, Any] = {}

    if not resolved_root.exists():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Package root '{resolved_root}' does not exist.",
            )
        )
        status = "missing"
    elif not resolved_root.is_dir():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Package root '{resolved_root}' is not a directory.",
            )
        )
        status = "invalid"
    else:
        overrides_dir = resolved_root / "config"
        if overrides_dir.exists():
            package_overrides, override_files = _load_directory_configs(
                overrides_dir,
                diagnostics,
                label="package overrides",
            )
            files_loaded.extend(override_files)

    merged = deepcopy(repo_defaults)
    _deep_merge_dicts(merged, package_overrides)

    _validate_section(merged, CONFIG_SCHEMA, "config", diagnostics)

    if status == "ready" and any(diag.level == "error" for diag in diagnostics):
        status = "invalid"

    return ConfigurationBundle(
        package_root=resolved_root,
        status=status,
        merged=merged,
        repo_defaults=repo_defaults,
        package_overrides=package_overrides,
        files_loaded=files_loaded,
        diagnostics=diagnostics,
    )


def _load_directory_configs(
    directory: Path,
    diagnostics: List[Diagnostic],
    label: str,
) -> Tuple[Dict[str, Any], List[Path]]:
    """Load all YAML files from a directory, merging them in name order."""

    data: Dict[str, Any] = {}
    loaded_files: List[Path] = []

    if not directory.exists():
        diagnostics.append(
            Diagnostic(
                level="warning",
                message=f"No configuration directory found at '{directory}' ({label}).",
                source=directory,
            )
        )
        return data, loaded_files

    if not directory.is_dir():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Configuration path '{directory}' ({label}) is not a directory.",
                source=directory,
            )
        )
        return data, loaded_files

    yaml_files = sorted(
        list(directory.glob("*.yml")) + list(directory.glob("*.yaml")),
        key=lambda path: path.name,
    )

    for yaml_file in yaml_files:
        try:
            content = yaml.safe_load(yaml_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"Failed to parse '{yaml_file}': {exc}",
                    source=yaml_file,
                )
            )
            continue

        if content is None:
            loaded_files.append(yaml_file)
            continue

        if not isinstance(content, MutableMapping):
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Ignoring '{yaml_file}' because it does not contain a mapping.",
                    source=yaml_file,
                )
            )
            continue

        _deep_merge_dicts(data, dict(content))
        loaded_files.append(yaml_file)

    return data, loaded_files


def _deep_merge_dicts(dest: MutableMapping[str, Any], source: Mapping[str, Any]) -> None:
    """Recursively merge mapping values."""

    for key, value in source.items():
        if (
            key in dest
            and isinstance(dest[key], MutableMapping)
            and isinstance(value, Mapping)
        ):
            _deep_merge_dicts(dest[key], value)
        else:
            dest[key] = deepcopy(value)


def _default_from_spec(spec: SchemaSpec) -> Any:
    if "default_factory" in spec and callable(spec["default_factory"]):
        return spec["default_factory"]()
    return deepcopy(spec.get("default"))


def _error(diagnostics: List[Diagnostic], message: str) -> None:
    diagnostics.append(Diagnostic(level="error", message=message))


def _validate_section(
    target: Dict[str, Any],
    schema: SchemaSpec,
    path: str,
    diagnostics: List[Diagnostic],
) -> None:
    for key in list(target.keys()):
        if key not in schema:
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Unknown configuration key '{path}.{key}'.",
                )
            )

    for key, spec in schema.items():
        child_path = f"{path}.{key}"
        if key not in target:
            if "default" in spec or "default_factory" in spec:
                target[key] = _default_from_spec(spec)
            if spec.get("type") is dict:
                _validate_section(target[key], spec.get("schema", {}), child_path, diagnostics)
            continue

        value = target[key]
        expected_type = spec.get("type")

        if expected_type is dict:
            if not isinstance(value, dict):
                _error(diagnostics, f"'{child_path}' must be a mapping.")
                value = target[key] = {}
            _validate_section(value, spec.get("schema", {}), child_path, diagnostics)
        elif expected_type is list:
            if not isinstance(value, list):
                _error(diagnostics, f"'{child_path}' must be a list.")
                target[key] = _default_from_spec(spec) or []
                continue
            item_type = spec.get("item_type")
            if item_type is not None:
                filtered: List[Any] = []
                for idx, item in enumerate(value):
                    if isinstance(item, item_type):
                        filtered.append(item)
                    else:
                        _error(
                            diagnostics,
                            f"'{child_path}[{idx}]' must be of type {item_type.__name__}.",
                        )
                target[key] = filtered
        elif expected_type and not isinstance(value, expected_type):
            _error(diagnostics, f"'{child_path}' must be of type {expected_type.__name__}.")
            target[key] = _default_from_spec(spec)
        elif "choices" in spec and value not in spec["choices"]:
            allowed = ", ".join(spec["choices"])
            _error(diagnostics, f"'{child_path}' must be one of: {allowed}.")
            target[key] = _default_from_spec(spec)


__all__ = [
    "CONFIG_SCHEMA",
    "ConfigurationBundle",
    "ConfigurationStatus",
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_EXTENSIONS",
    "DEFAULT_MANAGED_DIRECTORIES",
    "Diagnostic",
    "PACKAGE_ROOT_ENV",
    "load_runtime_configuration",
    "resolve_package_root",
]
