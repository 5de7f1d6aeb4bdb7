"""Tests for selection debouncing and floating-control placement."""

from __future__ import annotations

import asyncio

import pytest

from brief.annotate.selection import (
    MARGIN,
    POPOVER_HEIGHT,
    POPOVER_WIDTH,
    Position,
    Rect,
    SelectionController,
    SelectionReport,
    Size,
    ToolbarState,
    detail_position,
    popover_position,
    toolbar_position,
)

VIEWPORT = Size(width=1000, height=800)
TOOLBAR = Size(width=190, height=40)


class TestToolbarPosition:
    """Toolbar sits centred above the selection."""

    def test_centred_above(self) -> None:
        rect = Rect(top=300, left=400, width=100, height=20)
        assert toolbar_position(rect, TOOLBAR, VIEWPORT) == Position(
            top=300 - 40 - MARGIN, left=450 - 95
        )

    def test_flips_below_near_top(self) -> None:
        """Too close to the top edge, the toolbar goes under the selection."""
        rect = Rect(top=10, left=400, width=100, height=20)
        assert toolbar_position(rect, TOOLBAR, VIEWPORT).top == 30 + MARGIN

    def test_clamped_to_viewport(self) -> None:
        left_edge = Rect(top=300, left=0, width=10, height=20)
        right_edge = Rect(top=300, left=990, width=10, height=20)
        assert toolbar_position(left_edge, TOOLBAR, VIEWPORT).left == MARGIN
        assert (
            toolbar_position(right_edge, TOOLBAR, VIEWPORT).left
            == 1000 - 190 - MARGIN
        )


class TestPopoverPosition:
    """Comment editor placement."""

    def test_below_anchor(self) -> None:
        anchor = Rect(top=100, left=50, width=80, height=20)
        assert popover_position(anchor, VIEWPORT) == Position(
            top=120 + MARGIN, left=50
        )

    def test_above_near_bottom(self) -> None:
        anchor = Rect(top=700, left=50, width=80, height=20)
        assert popover_position(anchor, VIEWPORT).top == 700 - POPOVER_HEIGHT

    def test_kept_inside_right_edge(self) -> None:
        anchor = Rect(top=100, left=900, width=80, height=20)
        assert popover_position(anchor, VIEWPORT).left == 1000 - POPOVER_WIDTH


class TestDetailPosition:
    def test_flips_above(self) -> None:
        detail = Size(width=280, height=120)
        anchor = Rect(top=720, left=100, width=40, height=20)
        assert detail_position(anchor, detail, VIEWPORT).top == 720 - 120 - MARGIN


class TestSelectionController:
    """Debounced selection reports drive the toolbar state."""

    @staticmethod
    def _controller(calls: list[ToolbarState], resolved=("range", ["slice"])):
        def resolve(_report: SelectionReport):
            return resolved

        return SelectionController(resolve, calls.append, debounce_seconds=0.01)

    @pytest.mark.asyncio
    async def test_only_last_report_settles(self) -> None:
        """A burst of reports produces one toolbar update."""
        calls: list[ToolbarState] = []
        controller = self._controller(calls)

        for end in (3, 6, 9):
            controller.report(SelectionReport(start=0, end=end))
        await controller.wait_settled()

        assert len(calls) == 1
        assert calls[0].visible

    @pytest.mark.asyncio
    async def test_nothing_before_delay(self) -> None:
        calls: list[ToolbarState] = []
        controller = self._controller(calls)

        controller.report(SelectionReport(start=0, end=3))
        await asyncio.sleep(0)

        assert calls == []
        controller.cancel()

    @pytest.mark.asyncio
    async def test_positions_toolbar_from_rect(self) -> None:
        calls: list[ToolbarState] = []
        controller = self._controller(calls)
        controller.viewport = VIEWPORT
        rect = Rect(top=300, left=400, width=100, height=20)

        controller.report(SelectionReport(start=0, end=3, rect=rect))
        await controller.wait_settled()

        assert calls[0].position == toolbar_position(rect, TOOLBAR, VIEWPORT)

    @pytest.mark.asyncio
    async def test_collapsed_selection_hides(self) -> None:
        calls: list[ToolbarState] = []
        controller = self._controller(calls)

        controller.report(None)
        await controller.wait_settled()

        assert calls == [ToolbarState()]

    @pytest.mark.asyncio
    async def test_unresolvable_selection_hides(self) -> None:
        """A selection with no text slices never shows the toolbar."""
        calls: list[ToolbarState] = []
        controller = self._controller(calls, resolved=("range", []))

        controller.report(SelectionReport(start=0, end=3))
        await controller.wait_settled()

        assert calls[0].visible is False

    @pytest.mark.asyncio
    async def test_open_popover_keeps_saved_range(self) -> None:
        """Clicking into the comment editor does not discard the selection."""
        calls: list[ToolbarState] = []
        controller = self._controller(calls)
        controller.report(SelectionReport(start=0, end=3))
        await controller.wait_settled()
        saved = controller.state

        controller.popover_open = True
        controller.report(None)
        await controller.wait_settled()

        assert controller.state is saved
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_async_on_change_is_awaited(self) -> None:
        seen: list[bool] = []

        async def on_change(state: ToolbarState) -> None:
            seen.append(state.visible)

        controller = SelectionController(
            lambda _r: ("range", ["slice"]), on_change, debounce_seconds=0
        )
        controller.report(SelectionReport(start=0, end=1))
        await controller.wait_settled()

        assert seen == [True]

    def test_hide_resets_state(self) -> None:
        controller = self._controller([])
        controller.state = ToolbarState(visible=True)
        assert controller.hide() == ToolbarState()
