"""Install curated agent/rule files into a project or home directory and keep them in sync."""

from __future__ import annotations

from typing import Any, Dict

from .configuration import DEFAULT_EXTENSIONS, DEFAULT_MANAGED_DIRECTORIES

__version__ = "0.1.0"
NAME = "rulesync"
DESCRIPTION = "Manifest-driven sync of curated markdown settings into .cursor directories"


def get_package_info() -> Dict[str, Any]:
    """Describe the package and what it manages by default."""
    return {
        "name": NAME,
        "version": __version__,
        "description": DESCRIPTION,
        "managed_directories": list(DEFAULT_MANAGED_DIRECTORIES),
        "managed_extension": DEFAULT_EXTENSIONS[0],
    }


__all__ = ["__version__", "get_package_info"]
