"""Tests for destination containment checks."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from rulesync.errors import PathTraversal, RulesyncError
from rulesync.sync.paths import is_managed_relative_path, resolve_inside


def _symlink(link: Path, target: Path, *, is_dir: bool = False) -> None:
    try:
        os.symlink(target, link, target_is_directory=is_dir)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks are not supported here")


def test_resolve_inside_accepts_nested_paths(tmp_path: Path):
    assert resolve_inside(tmp_path, "agents/a.md") == tmp_path / "agents" / "a.md"
    assert resolve_inside(tmp_path, "top.md") == tmp_path / "top.md"


@pytest.mark.parametrize(
    "rel_path",
    ["../escape.md", "agents/../../escape.md", "agents/../rules/r.md", "/etc/passwd", ".", ""],
)
def test_resolve_inside_rejects_escapes(tmp_path: Path, rel_path: str):
    root = tmp_path / "dest"
    root.mkdir()

    with pytest.raises(PathTraversal) as excinfo:
        resolve_inside(root, rel_path)

    assert isinstance(excinfo.value, RulesyncError)
    assert excinfo.value.to_dict()["kind"] == "path_traversal"


def test_resolve_inside_rejects_symlinked_directory_out_of_root(tmp_path: Path):
    root = tmp_path / "dest"
    root.mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()
    _symlink(root / "agents", outside, is_dir=True)

    with pytest.raises(PathTraversal):
        resolve_inside(root, "agents/a.md")


def test_resolve_inside_returns_the_link_not_its_target(tmp_path: Path):
    root = tmp_path / "dest"
    mine = root / "agents" / "mine.md"
    mine.parent.mkdir(parents=True)
    mine.write_text("mine", encoding="utf-8")
    _symlink(root / "agents" / "b.md", mine)

    target = resolve_inside(root, "agents/b.md")

    assert target == root / "agents" / "b.md"
    assert target.is_symlink()


@pytest.mark.parametrize(
    "rel_path, expected",
    [
        ("agents/a.md", True),
        ("skills/deep/s.md", True),
        ("../victim.md", False),
        ("agents/../../victim.md", False),
        ("/abs/path.md", False),
        ("C:\\Users\\victim.md", False),
        ("..\\victim.md", False),
        ("", False),
        ("   ", False),
    ],
)
def test_is_managed_relative_path(rel_path: str, expected: bool):
    assert is_managed_relative_path(rel_path) is expected
