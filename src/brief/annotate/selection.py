"""Selection observation and floating-control placement.

The browser reports a selection on every pointer or touch release; the
controller waits a short, fixed delay and only processes the last report,
so half-finished drags never reach the annotation engine. Placement helpers
are pure geometry over viewport coordinates.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from brief.annotate.range_mapper import TextRange, TextSlice

logger = logging.getLogger(__name__)

# Gap kept between floating controls and the viewport edge / anchor
MARGIN = 8
POPOVER_WIDTH = 336
POPOVER_HEIGHT = 160


@dataclass(frozen=True)
class Rect:
    """Viewport rectangle as reported by ``getBoundingClientRect``."""

    top: float
    left: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class Position:
    top: float
    left: float


def _clamp_left(left: float, width: float, viewport: Size) -> float:
    return max(MARGIN, min(left, viewport.width - width - MARGIN))


def toolbar_position(selection: Rect, toolbar: Size, viewport: Size) -> Position:
    """Centre the toolbar above the selection, flipping below near the top."""
    top = selection.top - toolbar.height - MARGIN
    left = selection.left + selection.width / 2 - toolbar.width / 2
    if top < MARGIN:
        top = selection.bottom + MARGIN
    return Position(top=top, left=_clamp_left(left, toolbar.width, viewport))


def popover_position(anchor: Rect, viewport: Size) -> Position:
    """Place the comment editor under *anchor*, above it near the bottom."""
    top = anchor.bottom + MARGIN
    left = max(MARGIN, min(anchor.left, viewport.width - POPOVER_WIDTH))
    if top + POPOVER_HEIGHT > viewport.height:
        top = anchor.top - POPOVER_HEIGHT
    return Position(top=top, left=left)


def detail_position(anchor: Rect, detail: Size, viewport: Size) -> Position:
    """Place the marker detail card under a marker, flipping above if needed."""
    top = anchor.bottom + MARGIN
    if top + detail.height > viewport.height - MARGIN:
        top = anchor.top - detail.height - MARGIN
    return Position(top=top, left=_clamp_left(anchor.left, detail.width, viewport))


@dataclass(frozen=True)
class SelectionReport:
    """One raw selection report from the browser.

    ``start``/``end`` are character offsets into the content container's
    text; ``rect`` is the selection's bounding box.
    """

    start: int
    end: int
    rect: Rect | None = None


@dataclass
class ToolbarState:
    """What the floating toolbar should show."""

    visible: bool = False
    text_range: TextRange | None = None
    slices: tuple[TextSlice, ...] = ()
    position: Position | None = None


class SelectionController:
    """Debounce selection reports and drive the toolbar state.

    Args:
        resolve: Maps a report to ``(range, slices)``; ``None`` or empty
            slices mean there is nothing annotatable selected.
        on_change: Called with the new ToolbarState after each settled report.
        debounce_seconds: Delay after the last report before it is processed.
        toolbar_size: Rendered toolbar size, for placement.
    """

    def __init__(
        self,
        resolve: Callable[[SelectionReport], tuple[TextRange, list[TextSlice]] | None],
        on_change: Callable[[ToolbarState], Awaitable[None] | None],
        debounce_seconds: float = 0.02,
        toolbar_size: Size = Size(width=190, height=40),
    ) -> None:
        self._resolve = resolve
        self._on_change = on_change
        self.debounce_seconds = debounce_seconds
        self.toolbar_size = toolbar_size
        self.viewport = Size(width=1280, height=800)
        self.state = ToolbarState()
        self.popover_open = False
        self._pending: asyncio.Task[None] | None = None

    def report(self, selection: SelectionReport | None) -> None:
        """Record a selection report, restarting the debounce window.

        ``None`` stands for a collapsed or empty selection.
        """
        self.cancel()

        async def settle() -> None:
            await asyncio.sleep(self.debounce_seconds)
            await self._settle(selection)

        self._pending = asyncio.get_running_loop().create_task(settle())

    def cancel(self) -> None:
        """Drop a report that has not settled yet."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def wait_settled(self) -> None:
        """Wait for the pending report, if any, to be processed."""
        if self._pending is not None:
            await asyncio.gather(self._pending, return_exceptions=True)

    async def _settle(self, selection: SelectionReport | None) -> None:
        resolved = self._resolve(selection) if selection is not None else None
        if resolved is None or not resolved[1]:
            if self.popover_open:
                # Keep the saved range while the comment editor is open
                return
            await self._publish(ToolbarState())
            return
        text_range, slices = resolved
        position = None
        if selection is not None and selection.rect is not None:
            position = toolbar_position(
                selection.rect, self.toolbar_size, self.viewport
            )
        await self._publish(
            ToolbarState(
                visible=True,
                text_range=text_range,
                slices=tuple(slices),
                position=position,
            )
        )

    async def _publish(self, state: ToolbarState) -> None:
        self.state = state
        outcome = self._on_change(state)
        if outcome is not None:
            await outcome

    def hide(self) -> ToolbarState:
        """Hide the toolbar and forget the saved range."""
        self.cancel()
        self.state = ToolbarState()
        return self.state
