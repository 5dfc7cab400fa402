"""Unit tests for file helpers."""

from pathlib import Path

import pytest

from smart_tags.core.exceptions import TagIOError, TextDecodeError
from smart_tags.core.fileio import atomic_write_text, read_text


class TestReadText:
    def test_keeps_crlf(self, tmp_path: Path) -> None:
        path = tmp_path / "note.md"
        path.write_bytes(b"a\r\nb\r\n")

        assert read_text(path) == "a\r\nb\r\n"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(TagIOError, match="Failed to read"):
            read_text(tmp_path / "missing.md")

    def test_not_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "note.md"
        path.write_bytes(b"caf\xe9\n")

        with pytest.raises(TextDecodeError, match="Failed to decode"):
            read_text(path)


class TestAtomicWriteText:
    def test_replaces_content(self, tmp_path: Path) -> None:
        path = tmp_path / "note.md"
        path.write_text("old", encoding="utf-8")

        atomic_write_text(path, "new\r\n")

        assert path.read_bytes() == b"new\r\n"
        assert [p.name for p in tmp_path.iterdir()] == ["note.md"]

    def test_creates_parent(self, tmp_path: Path) -> None:
        path = tmp_path / "a" / "b" / "note.md"

        atomic_write_text(path, "x")

        assert path.read_text(encoding="utf-8") == "x"

    def test_failure_keeps_original(self, tmp_path: Path) -> None:
        """書き込み先がディレクトリなら失敗し、一時ファイルを残さないこと."""
        target = tmp_path / "dir_target"
        target.mkdir()

        with pytest.raises(TagIOError, match="Failed to write"):
            atomic_write_text(target, "x")

        assert [p.name for p in tmp_path.iterdir()] == ["dir_target"]
        assert list(target.iterdir()) == []
