"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from bs4 import BeautifulSoup

if TYPE_CHECKING:
    from collections.abc import Callable

    from bs4 import Tag

type RootFactory = Callable[[str], Tag]


def build_root(html: str) -> Tag:
    """Parse *html* inside a ``<div id="content">`` and return that div."""
    soup = BeautifulSoup(f'<div id="content">{html}</div>', "html.parser")
    root = soup.find("div", id="content")
    assert root is not None
    return root  # type: ignore[return-value]


@pytest.fixture
def make_root() -> RootFactory:
    """Factory for content roots built from an HTML fragment."""
    return build_root
