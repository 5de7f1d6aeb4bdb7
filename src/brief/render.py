"""Markdown to HTML rendering for the reader.

Rendering is regenerated from source on every load; nothing here keeps
state between calls. The title comes from the first ``<h1>`` and falls back
to the filename stem.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath

import markdown2
from selectolax.lexbor import LexborHTMLParser

logger = logging.getLogger(__name__)

_MARKDOWN_EXTRAS = ["fenced-code-blocks", "tables", "strike", "task_list"]

# Leading YAML frontmatter block (dropped, not parsed)
_FRONTMATTER = re.compile(r"\A---[ \t]*\r?\n.*?\r?\n---[ \t]*(\r?\n|\Z)", re.DOTALL)

_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class RenderedDocument:
    """Output of the rendering collaborator.

    Attributes:
        html: Body HTML for the content container (no wrapper element).
        title: Document title for export headers.
        filename: Raw filename or folder-relative path.
    """

    html: str
    title: str
    filename: str


def strip_frontmatter(raw: str) -> str:
    """Remove a leading ``---`` delimited frontmatter block."""
    return _FRONTMATTER.sub("", raw, count=1)


def extract_title(html: str, fallback: str) -> str:
    """Text of the first ``<h1>``, whitespace-collapsed, or *fallback*."""
    if not html:
        return fallback
    heading = LexborHTMLParser(html).css_first("h1")
    if heading is None:
        return fallback
    title = _WHITESPACE_RUN.sub(" ", heading.text() or "").strip()
    return title or fallback


def render_markdown(raw: str, filename: str) -> RenderedDocument:
    """Render markdown source for display.

    Args:
        raw: Markdown source as read from disk or upload.
        filename: Name shown in export headers; its stem is the title
            fallback.

    Returns:
        RenderedDocument with body HTML and title.
    """
    # Raw HTML in the source is escaped; the result is injected unsanitized
    body = markdown2.markdown(
        strip_frontmatter(raw), extras=_MARKDOWN_EXTRAS, safe_mode="escape"
    )
    html = str(body).strip()
    fallback = PurePosixPath(filename).stem or filename
    title = extract_title(html, fallback)
    logger.debug("Rendered %s (%d chars of HTML)", filename, len(html))
    return RenderedDocument(html=html, title=title, filename=filename)
