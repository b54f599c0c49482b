"""Destination selection (project-local or home directory)."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .manifest import ManifestStore

logger = logging.getLogger("rulesync.sync.location")

DEFAULT_DESTINATION_DIRNAME = ".cursor"


class DestinationChoice(str, Enum):
    """Where the managed files are installed."""
    LOCAL = "local"
    HOME = "home"


def resolve_destination(
    choice: DestinationChoice,
    *,
    cwd: Optional[Path] = None,
    home: Optional[Path] = None,
    dirname: str = DEFAULT_DESTINATION_DIRNAME,
) -> Path:
    """Map a destination choice onto a concrete directory."""
    if choice is DestinationChoice.HOME:
        base = home or Path.home()
    else:
        base = cwd or Path.cwd()
    return base / dirname


def detect_installation(
    store: "ManifestStore",
    *,
    cwd: Optional[Path] = None,
    home: Optional[Path] = None,
    dirname: str = DEFAULT_DESTINATION_DIRNAME,
) -> Optional[DestinationChoice]:
    """Return the remembered destination, checking the local one first.

    The choice recorded in the manifest wins over the directory it was found
    in, so a manifest copied between locations still reports where it was
    originally installed.
    """
    for choice in (DestinationChoice.LOCAL, DestinationChoice.HOME):
        destination = resolve_destination(choice, cwd=cwd, home=home, dirname=dirname)
        manifest = store.load(destination)
        if manifest is not None:
            logger.debug("Found %s installation at %s", manifest.selected_location.value, destination)
            return manifest.selected_location
    return None


__all__ = [
    "DEFAULT_DESTINATION_DIRNAME",
    "DestinationChoice",
    "resolve_destination",
    "detect_installation",
]
