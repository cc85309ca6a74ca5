"""
Filesystem Operations for Plugin Management.

This module provides the tree operations the installer and uninstaller build on.

Key features:
- Directory creation that reports which levels were actually created
- Recursive copy and removal
- Moving trees in and out of a stash location
- File/directory/byte counting and human-readable sizes

Every mutating helper raises FilesystemError chained to the underlying OSError.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from trellis.plugin.errors import FilesystemError

logger = logging.getLogger(__name__)


@dataclass
class TreeStats:
    """Counts gathered by a recursive scan."""

    files: int = 0
    dirs: int = 0
    bytes: int = 0


def make_dirs(path: Path) -> list[Path]:
    """
    Create a directory and any missing parents.

    Args:
        path: Directory to create

    Returns:
        Directories that did not exist before, outermost first

    Raises:
        FilesystemError: If creation fails or path exists as a non-directory
    """
    missing = []
    current = path
    while not current.exists():
        missing.append(current)
        if current.parent == current:
            break
        current = current.parent
    missing.reverse()

    try:
        path.mkdir(parents=True, exist_ok=True)
    except FileExistsError as e:
        raise FilesystemError(f"Path exists and is not a directory: {path}") from e
    except OSError as e:
        raise FilesystemError(f"Failed to create directory {path}: {e}") from e

    for created in missing:
        logger.debug("Created directory %s", created)
    return missing


def copy_tree(source: Path, dest: Path) -> None:
    """
    Recursively copy a directory's contents into dest.

    Existing files in dest are overwritten; symlinks are copied as links.

    Raises:
        FilesystemError: If the copy fails
    """
    try:
        shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise FilesystemError(f"Failed to copy {source} to {dest}: {e}") from e
    logger.debug("Copied %s -> %s", source, dest)


def remove_tree(path: Path, missing_ok: bool = True) -> bool:
    """
    Recursively remove a directory (or a single file).

    Args:
        path: Path to remove
        missing_ok: Treat a missing path as already removed

    Returns:
        True if something was removed, False if the path did not exist

    Raises:
        FilesystemError: If removal fails, or the path is missing and missing_ok is False
    """
    if not path.exists() and not path.is_symlink():
        if missing_ok:
            return False
        raise FilesystemError(f"Path not found: {path}")

    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        raise FilesystemError(f"Failed to remove {path}: {e}") from e

    logger.debug("Removed %s", path)
    return True


def move_tree(source: Path, dest: Path) -> None:
    """
    Move a directory to a new location, creating dest's parent.

    Raises:
        FilesystemError: If dest already exists or the move fails
    """
    if dest.exists():
        raise FilesystemError(f"Move target already exists: {dest}")
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(dest))
    except OSError as e:
        raise FilesystemError(f"Failed to move {source} to {dest}: {e}") from e
    logger.debug("Moved %s -> %s", source, dest)


def list_subdirectories(path: Path) -> list[str]:
    """Names of the immediate subdirectories of path, sorted. Missing path -> []."""
    try:
        return sorted(entry.name for entry in path.iterdir() if entry.is_dir())
    except OSError:
        return []


def tree_stats(path: Path) -> TreeStats:
    """
    Count files, directories and bytes below path.

    Unreadable entries are skipped; the root itself is not counted.
    """
    stats = TreeStats()
    pending = [path]

    while pending:
        current = pending.pop()
        try:
            entries = list(current.iterdir())
        except OSError:
            continue

        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir():
                stats.dirs += 1
                pending.append(entry)
            elif entry.is_file():
                stats.files += 1
                try:
                    stats.bytes += entry.stat().st_size
                except OSError:
                    pass

    return stats


def format_bytes(size: int) -> str:
    """
    Format a byte count for humans.

    Example:
        format_bytes(0)     # "0 Bytes"
        format_bytes(1536)  # "1.5 KB"
    """
    if size <= 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB", "TB"]
    index = 0
    while size >= 1024 ** (index + 1) and index < len(units) - 1:
        index += 1
    value = round(size / (1024**index), 1)
    if value == int(value):
        value = int(value)
    return f"{value} {units[index]}"
