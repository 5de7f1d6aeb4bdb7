"""Tests for re-anchoring persisted annotations on a rendered tree."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from brief.annotate.anchoring import anchor
from brief.annotate.dom_marker import find_markers
from brief.annotate.models import AnnotationKind
from brief.annotate.range_mapper import document_text
from brief.annotate.store import AnnotationStore

if TYPE_CHECKING:
    from tests.unit.conftest import RootFactory


def _store(*texts: str) -> AnnotationStore:
    store = AnnotationStore()
    for text in texts:
        store.create(AnnotationKind.STRIKE, text)
    return store


class TestAnchor:
    """anchor() re-locates annotations by their quoted text."""

    def test_marks_each_annotation(self, make_root: RootFactory) -> None:
        """Every locatable annotation gets its markers back."""
        root = make_root("<p>The quick brown fox</p>")
        store = AnnotationStore()
        store.create(AnnotationKind.STRIKE, "quick")
        store.create(AnnotationKind.COMMENT, "fox", "Which fox?")

        result = anchor(root, store)

        assert [a.id for a in result.anchored] == [1, 2]
        assert result.dropped == []
        assert [m.get_text() for m in find_markers(root, 1)] == ["quick"]
        (comment_marker,) = find_markers(root, 2)
        assert comment_marker["title"] == "Which fox?"

    def test_duplicates_land_on_distinct_occurrences(
        self, make_root: RootFactory
    ) -> None:
        """N annotations quoting the same phrase take N occurrences in order."""
        root = make_root("<p>the cat and the dog and the end</p>")
        store = _store("the", "the")

        result = anchor(root, store)

        assert result.spans == {1: (0, 3), 2: (12, 15)}

    def test_earlier_text_found_after_later_match(
        self, make_root: RootFactory
    ) -> None:
        """Text before the previous match is found from the top."""
        root = make_root("<p>cat then dog</p>")
        store = _store("dog", "cat")

        result = anchor(root, store)

        assert result.dropped == []
        assert result.spans == {1: (9, 12), 2: (0, 3)}
        assert [m.get_text() for m in find_markers(root, 2)] == ["cat"]

    def test_restart_skips_claimed_duplicates(self, make_root: RootFactory) -> None:
        """A restarted search never reuses an occurrence of the same text."""
        root = make_root("<p>the cat and the dog</p>")
        store = _store("the", "dog", "the")

        result = anchor(root, store)

        assert result.dropped == []
        assert result.spans[1] == (0, 3)
        assert result.spans[3] == (12, 15)

    def test_overlapping_annotations_both_anchor(
        self, make_root: RootFactory
    ) -> None:
        root = make_root("<p>The quick brown fox</p>")
        store = _store("brown fox", "quick brown")

        result = anchor(root, store)

        assert [a.id for a in result.anchored] == [1, 2]
        assert result.spans[2] == (4, 15)

    def test_missing_text_is_dropped_from_store(
        self, make_root: RootFactory, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Annotations whose text vanished are removed and logged."""
        root = make_root("<p>alpha beta</p>")
        store = _store("alpha", "gone", "beta")

        with caplog.at_level(logging.INFO, logger="brief.annotate.anchoring"):
            result = anchor(root, store)

        assert [a.text for a in result.dropped] == ["gone"]
        assert [a.text for a in store] == ["alpha", "beta"]
        assert "Dropped annotation 2" in caplog.text

    def test_cross_paragraph_text(self, make_root: RootFactory) -> None:
        """Quoted text spanning two paragraphs re-anchors as two markers."""
        root = make_root("<p>First para</p><p>Second para</p>")
        store = _store("paraSecond")

        anchor(root, store)

        assert [m.get_text() for m in find_markers(root, 1)] == ["para", "Second"]

    def test_idempotent(self, make_root: RootFactory) -> None:
        """Anchoring twice leaves the same tree and text."""
        root = make_root("<p>Hello <b>bold</b> world</p>")
        store = _store("lo bold w")
        text = document_text(root)

        anchor(root, store)
        first = str(root)
        anchor(root, store)

        assert str(root) == first
        assert document_text(root) == text

    def test_empty_store(self, make_root: RootFactory) -> None:
        root = make_root("<p>text</p>")
        result = anchor(root, AnnotationStore())
        assert result.anchored == []
        assert result.dropped == []
