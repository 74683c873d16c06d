"""Sandboxed path resolution.

Every route that touches the filesystem on behalf of a user (directory
browsing, file download, media streaming) resolves the requested path through
``resolve`` first. Resolution is purely lexical: the user path is joined to
the root, ``.``, ``..`` and empty segments of the join are collapsed, and the
root's segments must be a prefix of the result's segments. No filesystem call
is made, so nothing outside the root is ever stat'ed, opened or listed.

Symlinks inside the root are not resolved; the root is trusted content.
"""

import posixpath
from pathlib import PurePosixPath
from typing import Optional

import structlog

from homedash.core.exceptions import AccessDeniedError, UnconfiguredError

logger = structlog.get_logger(__name__)


def normalize_root(root: Optional[str]) -> PurePosixPath:
    """Validate and normalize a sandbox root.

    Args:
        root: Absolute root directory, or None when unconfigured.

    Returns:
        The normalized root path.

    Raises:
        UnconfiguredError: If the root is unset, empty or relative.
    """
    if root is None or not str(root).strip():
        raise UnconfiguredError("Root directory is not configured")

    root_str = str(root).strip()
    if not root_str.startswith("/"):
        raise UnconfiguredError("Root directory must be an absolute path")

    return PurePosixPath(posixpath.normpath(root_str))


def is_within(root: PurePosixPath, candidate: PurePosixPath) -> bool:
    """Check segment-wise that ``candidate`` equals ``root`` or lies under it.

    A raw string prefix test would accept ``/data-secret`` for ``/data``;
    comparing the ``parts`` tuples does not.
    """
    root_parts = root.parts
    return candidate.parts[: len(root_parts)] == root_parts


def resolve(root: Optional[str], user_path: Optional[str]) -> PurePosixPath:
    """Resolve a user-supplied path inside a sandbox root.

    A leading ``/`` in ``user_path`` is relative to the root, so ``/Music`` and
    ``Music`` name the same directory. An empty path names the root itself.

    Args:
        root: Absolute sandbox root.
        user_path: Path supplied by the client.

    Returns:
        The absolute, normalized path, guaranteed to be the root or under it.

    Raises:
        UnconfiguredError: If the root is not configured.
        AccessDeniedError: If the path escapes the root.
    """
    root_path = normalize_root(root)
    user_path = user_path or ""

    if "\x00" in user_path:
        logger.warning("sandbox_denied", reason="nul_byte")
        raise AccessDeniedError("Access denied")

    # Normalize the whole join; only the final location decides containment
    joined = posixpath.normpath(f"{root_path.as_posix().rstrip('/')}/{user_path.lstrip('/')}")
    candidate = PurePosixPath(joined)

    if not is_within(root_path, candidate):
        # The attempted path is deliberately left out of the log entry
        logger.warning("sandbox_denied", reason="escapes_root")
        raise AccessDeniedError("Access denied")

    return candidate


def relative_to_root(root: Optional[str], path: PurePosixPath) -> str:
    """Return ``path`` relative to ``root`` in POSIX form ("" for the root)."""
    root_path = normalize_root(root)
    relative = path.relative_to(root_path)
    text = relative.as_posix()
    return "" if text == "." else text
