"""Read a markdown file or a folder of markdown files from disk."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = frozenset((".md", ".markdown", ".mdown", ".mkd"))

# Directories never worth descending into
_SKIP_DIRS = frozenset((".git", "node_modules", "__pycache__", ".venv", "venv"))


@dataclass
class Source:
    """A single file or a folder, ready to open in the reader.

    Attributes:
        name: Filename (single file) or folder name (folder).
        files: Path -> raw markdown. Folder paths are POSIX-style and relative
            to the folder, in sorted order.
        is_folder: Whether this source opens in folder mode.
    """

    name: str
    files: dict[str, str] = field(default_factory=dict)
    is_folder: bool = False


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


def load_source(path: Path) -> Source:
    """Load *path* as a single file or as a folder of markdown files.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If a folder contains no markdown files.
    """
    path = path.expanduser()
    if not path.exists():
        raise FileNotFoundError(path)

    if path.is_file():
        return Source(name=path.name, files={path.name: _read(path)})

    files: dict[str, str] = {}
    for candidate in sorted(path.rglob("*")):
        relative = candidate.relative_to(path)
        if any(part in _SKIP_DIRS for part in relative.parts):
            continue
        if candidate.is_file() and candidate.suffix.lower() in MARKDOWN_SUFFIXES:
            files[relative.as_posix()] = _read(candidate)

    if not files:
        msg = f"No markdown files found in {path}"
        raise ValueError(msg)
    logger.info("Loaded %d markdown files from %s", len(files), path)
    return Source(name=path.resolve().name, files=files, is_folder=True)
