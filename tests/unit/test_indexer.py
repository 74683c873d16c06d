"""Tests for directory listing and media catalog scanning."""

import os
from pathlib import Path

import pytest

from homedash.core.exceptions import (
    AccessDeniedError,
    InvalidPathError,
    NotFoundError,
    RetrievalError,
    UnconfiguredError,
)
from homedash.models.media import UNKNOWN_ALBUM, UNKNOWN_ARTIST, EntryKind
from homedash.services import indexer


@pytest.fixture
def browser_root(tmp_path: Path) -> Path:
    root = tmp_path / "files"
    (root / "Documents").mkdir(parents=True)
    (root / "Documents" / "notes.txt").write_text("hello")
    (root / "beta.txt").write_text("12345")
    (root / "Alpha").mkdir()
    (root / "alpha.txt").write_text("")
    return root


class TestListEntries:
    """Tests for indexer.list_entries."""

    def test_lists_one_level_sorted(self, browser_root: Path) -> None:
        entries = indexer.list_entries(str(browser_root), "")

        assert [e.name for e in entries] == ["Alpha", "alpha.txt", "beta.txt", "Documents"]

    def test_entry_fields(self, browser_root: Path) -> None:
        entries = {e.name: e for e in indexer.list_entries(str(browser_root), "/")}

        folder = entries["Documents"]
        assert folder.kind == EntryKind.FOLDER
        assert folder.size_bytes is None
        assert folder.relative_path == "Documents"
        assert "size" not in folder.to_dict()

        file_entry = entries["beta.txt"]
        assert file_entry.kind == EntryKind.FILE
        assert file_entry.size_bytes == 5
        assert len(file_entry.modified) == 10  # YYYY-MM-DD
        assert file_entry.to_dict()["type"] == "file"

    def test_nested_paths_are_relative_to_root(self, browser_root: Path) -> None:
        entries = indexer.list_entries(str(browser_root), "/Documents")

        assert [e.relative_path for e in entries] == ["Documents/notes.txt"]

    def test_empty_directory(self, browser_root: Path) -> None:
        assert indexer.list_entries(str(browser_root), "Alpha") == []

    def test_missing_directory(self, browser_root: Path) -> None:
        with pytest.raises(NotFoundError):
            indexer.list_entries(str(browser_root), "nope")

    def test_file_is_not_a_directory(self, browser_root: Path) -> None:
        with pytest.raises(InvalidPathError):
            indexer.list_entries(str(browser_root), "beta.txt")

    def test_escape_denied(self, browser_root: Path) -> None:
        with pytest.raises(AccessDeniedError):
            indexer.list_entries(str(browser_root), "../")

    def test_unconfigured(self) -> None:
        with pytest.raises(UnconfiguredError):
            indexer.list_entries(None, "")

    def test_dangling_symlink_skipped(self, browser_root: Path) -> None:
        os.symlink(browser_root / "missing-target", browser_root / "broken")

        names = [e.name for e in indexer.list_entries(str(browser_root), "")]

        assert "broken" not in names

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
    def test_unreadable_directory(self, browser_root: Path) -> None:
        locked = browser_root / "locked"
        locked.mkdir()
        locked.chmod(0o000)
        try:
            with pytest.raises(RetrievalError):
                indexer.list_entries(str(browser_root), "locked")
        finally:
            locked.chmod(0o755)


class TestResolveFile:
    def test_existing_file(self, browser_root: Path) -> None:
        path = indexer.resolve_file(str(browser_root), "Documents/notes.txt")

        assert path == browser_root / "Documents" / "notes.txt"

    @pytest.mark.parametrize("user_path", [None, "", "/"])
    def test_missing_path(self, browser_root: Path, user_path: str) -> None:
        with pytest.raises(InvalidPathError):
            indexer.resolve_file(str(browser_root), user_path)

    def test_directory_is_not_a_file(self, browser_root: Path) -> None:
        with pytest.raises(NotFoundError):
            indexer.resolve_file(str(browser_root), "Documents")

    def test_escape_denied(self, browser_root: Path) -> None:
        with pytest.raises(AccessDeniedError):
            indexer.resolve_file(str(browser_root), "../../etc/passwd")


class TestScanMediaRoot:
    """Tests for indexer.scan_media_root."""

    def test_layout_infers_artist_and_album(self, tmp_path: Path) -> None:
        root = tmp_path / "music"
        (root / "Daft Punk" / "Discovery").mkdir(parents=True)
        (root / "Daft Punk" / "Discovery" / "One More Time.mp3").write_bytes(b"x")
        (root / "Loose").mkdir()
        (root / "Loose" / "Single.FLAC").write_bytes(b"x")
        (root / "top.ogg").write_bytes(b"x")
        (root / "cover.jpg").write_bytes(b"x")

        entries = indexer.scan_media_root(str(root))

        assert [e.to_dict() for e in entries] == [
            {
                "path": "Daft Punk/Discovery/One More Time.mp3",
                "title": "One More Time",
                "artist": "Daft Punk",
                "album": "Discovery",
            },
            {
                "path": "Loose/Single.FLAC",
                "title": "Single",
                "artist": UNKNOWN_ARTIST,
                "album": "Loose",
            },
            {"path": "top.ogg", "title": "top", "artist": UNKNOWN_ARTIST, "album": UNKNOWN_ALBUM},
        ]

    def test_deep_nesting_uses_nearest_directories(self, tmp_path: Path) -> None:
        deep = tmp_path / "music" / "a" / "b" / "c"
        deep.mkdir(parents=True)
        (deep / "t.wav").write_bytes(b"x")

        (entry,) = indexer.scan_media_root(str(tmp_path / "music"))

        assert (entry.artist, entry.album) == ("b", "c")

    def test_missing_root_is_created(self, tmp_path: Path) -> None:
        root = tmp_path / "new" / "music"

        assert indexer.scan_media_root(str(root)) == []
        assert root.is_dir()

    def test_root_is_a_file(self, tmp_path: Path) -> None:
        root = tmp_path / "music"
        root.write_text("not a dir")

        with pytest.raises(UnconfiguredError):
            indexer.scan_media_root(str(root))

    def test_symlinked_directories_not_followed(self, tmp_path: Path) -> None:
        root = tmp_path / "music"
        root.mkdir()
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "leak.mp3").write_bytes(b"x")
        os.symlink(outside, root / "link")

        assert indexer.scan_media_root(str(root)) == []

    def test_unconfigured(self) -> None:
        with pytest.raises(UnconfiguredError):
            indexer.scan_media_root(None)
