"""Tests for loading markdown sources from disk."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from brief.sources import load_source

if TYPE_CHECKING:
    from pathlib import Path


class TestLoadSource:
    def test_single_file(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.md"
        path.write_text("# Notes\n", encoding="utf-8")

        source = load_source(path)

        assert not source.is_folder
        assert source.name == "notes.md"
        assert source.files == {"notes.md": "# Notes\n"}

    def test_folder_sorted_relative_paths(self, tmp_path: Path) -> None:
        """Folder files are keyed by sorted POSIX paths relative to the root."""
        root = tmp_path / "Proj"
        (root / "docs").mkdir(parents=True)
        (root / "b.md").write_text("B", encoding="utf-8")
        (root / "a.md").write_text("A", encoding="utf-8")
        (root / "docs" / "c.markdown").write_text("C", encoding="utf-8")
        (root / "notes.txt").write_text("ignored", encoding="utf-8")

        source = load_source(root)

        assert source.is_folder
        assert source.name == "Proj"
        assert list(source.files) == ["a.md", "b.md", "docs/c.markdown"]

    def test_skips_vendor_directories(self, tmp_path: Path) -> None:
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "x.md").write_text("x", encoding="utf-8")
        (tmp_path / "a.md").write_text("A", encoding="utf-8")

        assert list(load_source(tmp_path).files) == ["a.md"]

    def test_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_source(tmp_path / "absent.md")

    def test_folder_without_markdown(self, tmp_path: Path) -> None:
        (tmp_path / "x.txt").write_text("x", encoding="utf-8")
        with pytest.raises(ValueError, match="No markdown files"):
            load_source(tmp_path)
