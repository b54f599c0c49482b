"""Tests for empty-directory pruning."""

from __future__ import annotations

from pathlib import Path

from rulesync.sync.pruner import prune_empty_directories


def test_prune_removes_nested_empty_directories(tmp_path: Path):
    managed = tmp_path / "agents"
    (managed / "a" / "b").mkdir(parents=True)
    (managed / "keep").mkdir()
    (managed / "keep" / "user.md").write_text("mine", encoding="utf-8")

    removed = prune_empty_directories(managed)

    assert managed / "a" / "b" in removed
    assert managed / "a" in removed
    assert not (managed / "a").exists()
    assert (managed / "keep" / "user.md").exists()
    assert managed.exists()


def test_prune_removes_root_when_empty(tmp_path: Path):
    managed = tmp_path / "rules"
    (managed / "x").mkdir(parents=True)

    prune_empty_directories(managed)

    assert not managed.exists()


def test_prune_missing_directory_is_a_noop(tmp_path: Path):
    assert prune_empty_directories(tmp_path / "missing") == []


def test_prune_swallows_removal_errors(tmp_path: Path, monkeypatch):
    managed = tmp_path / "skills"
    (managed / "stuck").mkdir(parents=True)

    def fake_rmdir(self):
        raise PermissionError("busy")

    monkeypatch.setattr(Path, "rmdir", fake_rmdir)

    assert prune_empty_directories(managed) == []
    assert (managed / "stuck").exists()
