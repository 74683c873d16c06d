"""Directory listing and media catalog models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"


class EntryKind(str, Enum):
    """Kind of a directory entry."""

    FILE = "file"
    FOLDER = "folder"


@dataclass(frozen=True)
class DirectoryEntry:
    """One entry of a directory listing."""

    name: str
    kind: EntryKind
    modified: str  # ISO date, YYYY-MM-DD
    relative_path: str
    size_bytes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to the browse response shape."""
        result: Dict[str, Any] = {
            "name": self.name,
            "type": self.kind.value,
            "modified": self.modified,
            "path": self.relative_path,
        }
        if self.size_bytes is not None:
            result["size"] = self.size_bytes
        return result


@dataclass(frozen=True)
class MediaEntry:
    """One playable file in the media catalog.

    Artist and album come from the directory layout the acquisition job
    writes: ``<artist>/<album>/<title>.<ext>``.
    """

    relative_path: str
    title: str
    artist: str = UNKNOWN_ARTIST
    album: str = UNKNOWN_ALBUM

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to the catalog response shape."""
        return {
            "path": self.relative_path,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
        }
