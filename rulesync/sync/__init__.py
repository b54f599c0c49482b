"""Manifest-driven reconciliation of managed files into a destination directory."""

from __future__ import annotations

from .checksum import compute_content_identifier, compute_digest, compute_file_hash
from .client import InstallClient, InstallStatus, TrackedFile
from .conflict import ConflictResolution, ConflictResolver, UntrackedPolicy
from .drift import DriftDetector, DriftReport
from .enumerator import SourceEnumerator, SourceFile, enumerate_source_files
from .location import DestinationChoice, detect_installation, resolve_destination
from .manifest import InstallManifest, ManifestEntry, ManifestStore
from .operations import (
    FileOperation,
    ReconcileResult,
    ReconcileStats,
    RollbackResult,
    SyncAction,
    UninstallResult,
)
from .pruner import prune_empty_directories
from .reconciler import Reconciler
from .rollback import RollbackController
from .settings import InstallSettings

__all__ = [
    # Checksums
    "compute_content_identifier",
    "compute_digest",
    "compute_file_hash",
    # Enumeration
    "SourceEnumerator",
    "SourceFile",
    "enumerate_source_files",
    # Manifest
    "InstallManifest",
    "ManifestEntry",
    "ManifestStore",
    # Destination
    "DestinationChoice",
    "detect_installation",
    "resolve_destination",
    # Operations
    "FileOperation",
    "ReconcileResult",
    "ReconcileStats",
    "RollbackResult",
    "SyncAction",
    "UninstallResult",
    # Engine
    "Reconciler",
    "RollbackController",
    "prune_empty_directories",
    "ConflictResolution",
    "ConflictResolver",
    "UntrackedPolicy",
    "DriftDetector",
    "DriftReport",
    # Client
    "InstallClient",
    "InstallSettings",
    "InstallStatus",
    "TrackedFile",
]
