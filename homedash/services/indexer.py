"""Directory listing and media catalog scanning.

All paths coming from clients are resolved through the sandbox before any
filesystem call. Functions here are blocking; API handlers run them in the
threadpool.
"""

import errno
import os
import stat
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import FrozenSet, List, Optional

import structlog

from homedash.core import sandbox
from homedash.core.exceptions import (
    InvalidPathError,
    NotFoundError,
    RetrievalError,
    UnconfiguredError,
)
from homedash.models.media import (
    UNKNOWN_ALBUM,
    UNKNOWN_ARTIST,
    DirectoryEntry,
    EntryKind,
    MediaEntry,
)

logger = structlog.get_logger(__name__)

AUDIO_EXTENSIONS: FrozenSet[str] = frozenset({".mp3", ".m4a", ".flac", ".ogg", ".wav"})


def _sort_key(name: str) -> tuple:
    return (name.casefold(), name)


def _modified_date(mtime: float) -> str:
    return datetime.fromtimestamp(mtime, tz=timezone.utc).date().isoformat()


def list_entries(root: Optional[str], user_path: Optional[str]) -> List[DirectoryEntry]:
    """List one directory level under the sandbox root.

    Entries are sorted by name so listings are stable across platforms.

    Args:
        root: Sandbox root directory.
        user_path: Directory to list, relative to the root.

    Returns:
        Entries of the directory; empty for an empty directory.

    Raises:
        UnconfiguredError: If the root is not configured.
        AccessDeniedError: If the path escapes the root.
        NotFoundError: If the directory does not exist.
        InvalidPathError: If the path is not a directory.
        RetrievalError: If the directory cannot be read.
    """
    directory = sandbox.resolve(root, user_path)
    relative_dir = PurePosixPath(sandbox.relative_to_root(root, directory))

    try:
        with os.scandir(directory) as it:
            dir_entries = list(it)
    except FileNotFoundError as e:
        raise NotFoundError("Directory not found") from e
    except NotADirectoryError as e:
        raise InvalidPathError("Path is not a directory") from e
    except OSError as e:
        logger.error("directory_read_failed", error=e.strerror or str(e), errno=e.errno)
        raise RetrievalError("Failed to read directory.") from e

    entries: List[DirectoryEntry] = []
    for dir_entry in dir_entries:
        try:
            # Follows symlinks, like the listing the browser shows
            st = dir_entry.stat()
        except OSError as e:
            # Entry vanished or is a dangling link
            logger.debug("directory_entry_skipped", name=dir_entry.name, errno=e.errno)
            continue

        is_dir = stat.S_ISDIR(st.st_mode)
        entries.append(
            DirectoryEntry(
                name=dir_entry.name,
                kind=EntryKind.FOLDER if is_dir else EntryKind.FILE,
                size_bytes=None if is_dir else st.st_size,
                modified=_modified_date(st.st_mtime),
                relative_path=(relative_dir / dir_entry.name).as_posix(),
            )
        )

    entries.sort(key=lambda entry: _sort_key(entry.name))
    return entries


def resolve_file(root: Optional[str], user_path: Optional[str]) -> Path:
    """Resolve a user path to an existing regular file under the root.

    Raises:
        InvalidPathError: If no path was given.
        UnconfiguredError: If the root is not configured.
        AccessDeniedError: If the path escapes the root.
        NotFoundError: If the path is not an existing regular file.
    """
    if not user_path or not user_path.strip("/"):
        raise InvalidPathError("File path is required.")

    path = Path(sandbox.resolve(root, user_path))
    if not path.is_file():
        raise NotFoundError("File not found.")
    return path


def _media_entry(relative: PurePosixPath) -> MediaEntry:
    """Infer title, artist and album from the position of a file in the tree."""
    parts = relative.parts
    return MediaEntry(
        relative_path=relative.as_posix(),
        title=relative.stem,
        artist=parts[-3] if len(parts) > 2 else UNKNOWN_ARTIST,
        album=parts[-2] if len(parts) > 1 else UNKNOWN_ALBUM,
    )


def is_audio_file(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in AUDIO_EXTENSIONS


def scan_media_root(root: Optional[str]) -> List[MediaEntry]:
    """Recursively collect audio files under the media root.

    A missing root is created and reported as an empty library, so a fresh
    install shows an empty player instead of an error.

    Args:
        root: Media root directory.

    Returns:
        Media entries sorted by relative path.

    Raises:
        UnconfiguredError: If the root is not configured.
        RetrievalError: If the tree cannot be read.
    """
    root_path = Path(sandbox.normalize_root(root))

    if not root_path.exists():
        logger.warning("media_root_missing_created", path=str(root_path))
        try:
            root_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RetrievalError("Could not create music library directory.") from e
        return []

    if not root_path.is_dir():
        raise UnconfiguredError("Music directory is not a directory.")

    entries: List[MediaEntry] = []
    stack: List[PurePosixPath] = [PurePosixPath()]

    while stack:
        relative_dir = stack.pop()
        try:
            with os.scandir(root_path / relative_dir) as it:
                dir_entries = list(it)
        except FileNotFoundError:
            # Removed while scanning
            continue
        except OSError as e:
            if e.errno == errno.ENOENT:
                continue
            logger.error("media_scan_failed", error=e.strerror or str(e), errno=e.errno)
            raise RetrievalError("Could not read music library.") from e

        for dir_entry in dir_entries:
            relative = relative_dir / dir_entry.name
            if dir_entry.is_dir(follow_symlinks=False):
                stack.append(relative)
            elif dir_entry.is_file() and is_audio_file(dir_entry.name):
                entries.append(_media_entry(relative))

    entries.sort(key=lambda entry: _sort_key(entry.relative_path))
    return entries
