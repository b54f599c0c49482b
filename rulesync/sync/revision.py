"""Read the git revision of the content tree, when it is a checkout."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import re
import subprocess
from typing import List, Optional

logger = logging.getLogger("rulesync.sync.revision")

_GIT_HASH_RE = re.compile(r"^[0-9a-f]{40}$")


@dataclass
class SourceRevision:
    git_hash: Optional[str] = None
    git_tag: Optional[str] = None


def read_source_revision(source_root: Path) -> SourceRevision:
    """Return the HEAD commit and exact tag of ``source_root``.

    Missing git, a non-repository directory or an untagged commit simply
    leave the corresponding field empty.
    """
    if not source_root.is_dir():
        return SourceRevision()

    try:
        git_hash = _run_git(["rev-parse", "HEAD"], source_root)
    except (FileNotFoundError, subprocess.CalledProcessError) as exc:
        logger.debug("No git revision for %s: %s", source_root, exc)
        return SourceRevision()

    git_tag: Optional[str] = None
    try:
        git_tag = _run_git(["describe", "--tags", "--exact-match"], source_root) or None
    except subprocess.CalledProcessError:
        logger.debug("HEAD of %s is not tagged", source_root)

    git_hash = git_hash.lower()
    if not _GIT_HASH_RE.match(git_hash):
        logger.debug("Ignoring non-SHA-1 revision %r for %s", git_hash, source_root)
        return SourceRevision(git_tag=git_tag)
    return SourceRevision(git_hash=git_hash, git_tag=git_tag)


def _run_git(args: List[str], cwd: Path) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


__all__ = ["SourceRevision", "read_source_revision"]
