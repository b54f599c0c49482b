"""Containment checks for destination-relative paths."""

from __future__ import annotations

from pathlib import Path, PurePosixPath, PureWindowsPath

from ..errors import PathTraversal


def is_managed_relative_path(relative_path: str) -> bool:
    """True for a non-empty relative path without ``..`` segments or a drive."""
    if not isinstance(relative_path, str) or not relative_path.strip():
        return False
    posix = PurePosixPath(relative_path.replace("\\", "/"))
    if posix.is_absolute() or PureWindowsPath(relative_path).drive:
        return False
    return bool(posix.parts) and ".." not in posix.parts


def resolve_inside(root: Path, relative_path: str) -> Path:
    """Return ``root / relative_path``, raising ``PathTraversal`` on escape.

    The returned path is not resolved: when it is itself a symlink, callers
    act on the link, never on what it points to. Only the parent directory is
    resolved, so a symlinked directory leading out of ``root`` is rejected.
    """
    if not is_managed_relative_path(relative_path):
        raise PathTraversal(
            f"Path '{relative_path}' is not a plain relative path under {root}",
            path=root / relative_path if relative_path else root,
        )

    candidate = root / relative_path
    resolved_root = root.resolve()
    parent = candidate.parent.resolve()
    if parent != resolved_root and not parent.is_relative_to(resolved_root):
        raise PathTraversal(
            f"Path '{relative_path}' resolves outside {root}",
            path=parent,
        )
    return candidate


__all__ = ["is_managed_relative_path", "resolve_inside"]
