"""Filesystem helpers for staging, extracting and merging plugin files.

These functions are blocking; async callers run them with
``asyncio.to_thread``.
"""

import logging
import os
import shutil
import stat
import sys
import zipfile
import zlib
from pathlib import Path
from typing import Callable, List, Sequence

from obs_plugin_manager.errors import ArchiveError

logger = logging.getLogger(__name__)


def merge_directory(src: Path, dest: Path) -> List[Path]:
    """Recursively copy ``src`` into ``dest``, overwriting existing files.

    Missing destination directories are created. Files already in ``dest``
    that have no counterpart in ``src`` are left untouched.

    Args:
        src: Source directory
        dest: Destination directory

    Returns:
        Destination paths of every file written
    """
    written: List[Path] = []
    dest.mkdir(parents=True, exist_ok=True)

    for entry in sorted(src.iterdir()):
        target = dest / entry.name
        if entry.is_dir():
            written.extend(merge_directory(entry, target))
        else:
            shutil.copyfile(entry, target)
            written.append(target)

    return written


def copy_directory(src: Path, dest: Path) -> None:
    """Copy a directory tree to a new location."""
    shutil.copytree(src, dest, dirs_exist_ok=True)


def _make_writable_and_retry(func: Callable, path: str, exc: object) -> None:
    # Plugin folders copied from archives are sometimes read-only on Windows
    os.chmod(path, stat.S_IWRITE)
    func(path)


def remove_tree(path: Path) -> None:
    """Delete a directory tree. A missing directory is not an error."""
    if not path.exists():
        return
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_make_writable_and_retry)
    else:
        shutil.rmtree(path, onerror=_make_writable_and_retry)


def remove_tree_quietly(path: Path) -> None:
    """Best-effort removal used on cleanup paths; failures are logged."""
    try:
        remove_tree(path)
    except OSError as e:
        logger.warning("Failed to remove temporary directory %s: %s", path, e)


def extract_zip(archive: Path, dest: Path) -> List[Path]:
    """Extract a ZIP archive into ``dest``.

    Members are validated before anything is written, so a corrupt archive
    or one with entries escaping ``dest`` fails without partial output.

    Args:
        archive: ZIP file
        dest: Extraction directory

    Returns:
        Paths of the extracted files

    Raises:
        ArchiveError: If the archive is corrupt or unsafe
    """
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()

    try:
        with zipfile.ZipFile(archive) as zf:
            bad_member = zf.testzip()
            if bad_member is not None:
                raise ArchiveError(
                    f"Corrupt archive member: {bad_member}",
                    details={"archive": str(archive)},
                )

            members = zf.infolist()
            for member in members:
                target = (root / member.filename).resolve()
                if target != root and root not in target.parents:
                    raise ArchiveError(
                        f"Archive entry escapes extraction directory: {member.filename}",
                        details={"archive": str(archive)},
                    )

            zf.extractall(root)
    except zipfile.BadZipFile as e:
        raise ArchiveError(
            f"Failed to open ZIP file: {e}",
            details={"archive": str(archive)},
        ) from e
    except (zlib.error, EOFError, RuntimeError, NotImplementedError) as e:
        # zipfile lets these through for unreadable member data
        raise ArchiveError(
            f"Failed to read ZIP file: {e}",
            details={"archive": str(archive)},
        ) from e

    return [root / m.filename for m in members if not m.is_dir()]


def find_content_root(extract_dir: Path, markers: Sequence[str] = ()) -> Path:
    """Unwrap a single top-level folder, common in GitHub release archives.

    A top level that already holds one of ``markers`` is never unwrapped.
    """
    if any((extract_dir / marker).is_dir() for marker in markers):
        return extract_dir
    entries = list(extract_dir.iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return extract_dir

