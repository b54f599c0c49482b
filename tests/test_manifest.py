"""Tests for manifest persistence and validation."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from rulesync.errors import ManifestCorrupt, ManifestPersistFailure, NoBackupAvailable
from rulesync.sync import manifest as manifest_module
from rulesync.sync.location import DestinationChoice
from rulesync.sync.manifest import (
    InstallManifest,
    ManifestEntry,
    ManifestStore,
    validate_manifest_data,
)

CHECKSUM = "a" * 64
IDENTIFIER = "b" * 64


def _manifest(identifier: str = IDENTIFIER, files=None) -> InstallManifest:
    manifest = InstallManifest(
        selected_location=DestinationChoice.HOME,
        content_identifier=identifier,
        git_hash="c" * 40,
        git_tag="v1.2.0",
    )
    for rel_path, checksum in (files or {}).items():
        manifest.files[rel_path] = ManifestEntry(
            source=f"everything-claude-code/{rel_path}",
            checksum=checksum,
            installed_at="2026-01-01T00:00:00+00:00",
        )
    return manifest


def _write_json(path: Path, payload) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_save_writes_camel_case_document(tmp_path: Path):
    store = ManifestStore()
    store.save(_manifest(files={"agents/a.md": CHECKSUM}), tmp_path)

    data = json.loads((tmp_path / ".rulesync-manifest.json").read_text(encoding="utf-8"))

    assert data["version"] == "1.0"
    assert data["selectedLocation"] == "home"
    assert data["contentIdentifier"] == IDENTIFIER
    assert data["submoduleGitHash"] == "c" * 40
    assert data["submoduleGitTag"] == "v1.2.0"
    assert data["files"]["agents/a.md"] == {
        "source": "everything-claude-code/agents/a.md",
        "installedAt": "2026-01-01T00:00:00+00:00",
        "checksum": CHECKSUM,
    }


def test_save_then_load_preserves_entries(tmp_path: Path):
    store = ManifestStore()
    original = _manifest(files={"agents/a.md": CHECKSUM, "rules/r.md": "d" * 64})
    store.save(original, tmp_path)

    loaded = store.load(tmp_path)

    assert loaded == original


def test_save_leaves_no_temporary_files(tmp_path: Path):
    ManifestStore().save(_manifest(), tmp_path)

    assert sorted(p.name for p in tmp_path.iterdir()) == [".rulesync-manifest.json"]


def test_save_failure_raises_persist_failure(tmp_path: Path, monkeypatch):
    def broken_write(path, payload):
        raise OSError("disk full")

    monkeypatch.setattr(manifest_module, "_atomic_write_json", broken_write)

    with pytest.raises(ManifestPersistFailure) as excinfo:
        ManifestStore().save(_manifest(), tmp_path)

    assert excinfo.value.kind == "manifest_persist_failure"
    assert isinstance(excinfo.value.__cause__, OSError)


def test_failed_replace_keeps_previous_manifest(tmp_path: Path, monkeypatch):
    store = ManifestStore()
    store.save(_manifest(files={"agents/a.md": CHECKSUM}), tmp_path)

    def broken_replace(src, dst):
        raise OSError("rename failed")

    monkeypatch.setattr(manifest_module.os, "replace", broken_replace)

    with pytest.raises(ManifestPersistFailure):
        store.save(_manifest(identifier="e" * 64), tmp_path)

    monkeypatch.undo()
    assert store.load(tmp_path).content_identifier == IDENTIFIER
    assert sorted(p.name for p in tmp_path.iterdir()) == [".rulesync-manifest.json"]


def test_load_missing_manifest_returns_none(tmp_path: Path):
    assert ManifestStore().load(tmp_path) is None


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        ["list", "root"],
        {"version": "1.0"},
        {"version": "1.0", "files": {}, "contentIdentifier": "short"},
        {"version": "1.0", "files": {}, "submoduleGitHash": "xyz"},
        {"version": "1.0", "files": {}, "selectedLocation": "moon"},
        {"version": "1.0", "files": {"agents/a.md": {"source": "x", "checksum": "nope"}}},
        {"version": "1.0", "files": {"agents/a.md": {"checksum": CHECKSUM}}},
    ],
)
def test_load_unusable_manifest_returns_none(tmp_path: Path, payload, caplog):
    path = tmp_path / ".rulesync-manifest.json"
    if isinstance(payload, str):
        path.write_text(payload, encoding="utf-8")
    else:
        _write_json(path, payload)

    with caplog.at_level(logging.WARNING, logger="rulesync.sync.manifest"):
        assert ManifestStore().load(tmp_path) is None

    assert "Ignoring unusable manifest" in caplog.text


def test_validate_accepts_minimal_document():
    validate_manifest_data({"version": "1.0", "files": {}})


def test_validate_rejects_bad_checksum():
    with pytest.raises(ManifestCorrupt):
        validate_manifest_data(
            {"version": "1.0", "files": {"a.md": {"source": "x", "checksum": "A" * 64}}}
        )


def test_backup_and_restore(tmp_path: Path):
    store = ManifestStore()
    old = _manifest(files={"agents/old.md": CHECKSUM})
    store.save(_manifest(identifier="f" * 64, files={"agents/new.md": CHECKSUM}), tmp_path)

    assert store.backup(old, tmp_path) is True
    restored = store.restore(tmp_path)

    assert restored == old
    assert store.load(tmp_path) == old
    assert store.discard_backup(tmp_path) is True
    assert store.discard_backup(tmp_path) is False


def test_backup_failure_is_reported_not_raised(tmp_path: Path, monkeypatch):
    def broken_write(path, payload):
        raise PermissionError("read-only")

    monkeypatch.setattr(manifest_module, "_atomic_write_json", broken_write)

    assert ManifestStore().backup(_manifest(), tmp_path) is False


def test_restore_without_backup_raises(tmp_path: Path):
    with pytest.raises(NoBackupAvailable) as excinfo:
        ManifestStore().restore(tmp_path)

    assert excinfo.value.kind == "no_backup"


def test_custom_names_are_honoured(tmp_path: Path):
    store = ManifestStore("state.json", "state.bak.json")
    store.save(_manifest(), tmp_path)
    store.backup(_manifest(), tmp_path)

    assert (tmp_path / "state.json").exists()
    assert (tmp_path / "state.bak.json").exists()
    assert store.delete(tmp_path) is True
    assert store.load(tmp_path) is None


@pytest.mark.parametrize("key", ["../../victim.md", "/etc/victim.md", "agents/../../x.md", ""])
def test_load_rejects_entry_keys_outside_destination(tmp_path: Path, key: str):
    store = ManifestStore()
    store.save(_manifest(files={"agents/a.md": CHECKSUM}), tmp_path)
    path = store.manifest_path(tmp_path)
    data = json.loads(path.read_text(encoding="utf-8"))
    data["files"][key] = {"source": "x", "installedAt": "", "checksum": CHECKSUM}
    _write_json(path, data)

    assert store.load(tmp_path) is None
    with pytest.raises(ManifestCorrupt):
        validate_manifest_data(data)
