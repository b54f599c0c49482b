"""Source tree enumeration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

logger = logging.getLogger("rulesync.sync.enumerator")


@dataclass(frozen=True)
class SourceFile:
    """An eligible file in the content tree."""

    absolute_path: Path
    relative_path: str  # POSIX path relative to the source root


class SourceEnumerator:
    """Walks a content tree and yields files that pass the extension filter.

    Symbolic links are skipped entirely: linked files are never yielded and
    linked directories are never descended into.
    """

    def __init__(
        self,
        allowed_extensions: Sequence[str],
        subdirectories: Optional[Sequence[str]] = None,
    ):
        self.allowed_extensions = frozenset(_normalize_extension(ext) for ext in allowed_extensions)
        self.subdirectories = list(subdirectories) if subdirectories else None

    def enumerate(self, source_root: Path) -> List[SourceFile]:
        """Return eligible files sorted by relative path.

        A missing root yields an empty list; callers that need the tree to
        exist must check that themselves.
        """
        if not source_root.is_dir():
            logger.debug("Source root %s does not exist; nothing to enumerate", source_root)
            return []

        found = [
            SourceFile(
                absolute_path=path,
                relative_path=path.relative_to(source_root).as_posix(),
            )
            for path in self._iter_files(source_root)
        ]
        found.sort(key=lambda item: item.relative_path)
        logger.debug("Enumerated %d eligible files under %s", len(found), source_root)
        return found

    def is_eligible(self, path: Path) -> bool:
        return path.suffix.lower() in self.allowed_extensions

    def _iter_files(self, source_root: Path) -> Iterator[Path]:
        if self.subdirectories is None:
            yield from self._walk(source_root)
            return

        for subdir in self.subdirectories:
            dir_path = source_root / subdir
            if dir_path.is_symlink():
                logger.warning("Skipping symlinked source directory %s", dir_path)
                continue
            if not dir_path.is_dir():
                logger.info("Skipping %s (not found in source)", subdir)
                continue
            yield from self._walk(dir_path)

    def _walk(self, directory: Path) -> Iterator[Path]:
        with os.scandir(directory) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                if entry.is_symlink():
                    logger.debug("Skipping symlink %s", entry.path)
                    continue
                if entry.is_dir(follow_symlinks=False):
                    yield from self._walk(Path(entry.path))
                elif entry.is_file(follow_symlinks=False) and self.is_eligible(Path(entry.name)):
                    yield Path(entry.path)


def enumerate_source_files(
    source_root: Path,
    allowed_extensions: Sequence[str],
    subdirectories: Optional[Sequence[str]] = None,
) -> List[SourceFile]:
    """Functional shortcut for ``SourceEnumerator(...).enumerate(source_root)``."""
    return SourceEnumerator(allowed_extensions, subdirectories).enumerate(source_root)


def _normalize_extension(ext: str) -> str:
    cleaned = ext.strip().lower()
    if cleaned and not cleaned.startswith("."):
        cleaned = f".{cleaned}"
    return cleaned


__all__ = ["SourceFile", "SourceEnumerator", "enumerate_source_files"]
