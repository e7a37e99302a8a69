"""Filesystem layout and path helpers.

Directory structure:
    ~/.deadscan/                 - DEADSCAN_HOME
        config.yml               - global configuration
        data/                    - default data_dir
            inspections/         - FileInspectionStore documents
            <inspection id>/     - working directory of one inspection
                <repo name>/     - cloned sources
                db.udb           - analysis database
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Union

from deadscan.core.errors import FileSystemError, PathResolutionError
from deadscan.core.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_HOME_DIR_NAME = ".deadscan"

# Environment variable to override home directory
DEADSCAN_HOME_ENV = "DEADSCAN_HOME"

DATABASE_FILE_NAME = "db.udb"

PathLike = Union[str, "os.PathLike[str]"]


def get_deadscan_home() -> Path:
    """Get the deadscan home directory.

    Resolution order:
    1. DEADSCAN_HOME environment variable (if set)
    2. ~/.deadscan (default)
    """
    env_home = os.environ.get(DEADSCAN_HOME_ENV)
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / DEFAULT_HOME_DIR_NAME


def default_data_dir() -> Path:
    return get_deadscan_home() / "data"


def canonical_path(path: PathLike) -> str:
    """Resolve a path to absolute, symlink-free form.

    The path does not need to exist yet.

    Raises:
        PathResolutionError: If the path cannot be resolved (e.g. symlink loop).
    """
    try:
        return str(Path(path).expanduser().resolve())
    except (OSError, RuntimeError) as e:
        raise PathResolutionError(f"Cannot resolve path {path}: {e}") from e


def inspection_dir(data_dir: PathLike, inspection_id: str) -> Path:
    """Working directory owned by one inspection."""
    return Path(data_dir) / inspection_id


def delete_directory_if_exists(path: PathLike) -> bool:
    """Recursively delete a directory; a missing directory is not an error.

    Returns:
        True if something was deleted.

    Raises:
        FileSystemError: If the directory exists but cannot be removed.
    """
    target = Path(path)
    if not target.exists() and not target.is_symlink():
        return False
    try:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
    except OSError as e:
        raise FileSystemError(f"Failed to delete {target}: {e}") from e
    LOGGER.debug(f"Deleted {target}")
    return True
