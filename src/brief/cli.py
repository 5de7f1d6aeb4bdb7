"""Command-line utilities for Brief.

Export the persisted change request without opening a browser, or wipe all
persisted reader state.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import TYPE_CHECKING

from rich.console import Console

if TYPE_CHECKING:
    from brief.annotate.persistence import PersistenceLayer

console = Console()


async def _cmd_export(
    persistence: PersistenceLayer,
    *,
    console: Console | None = None,
) -> str | None:
    """Print the change request for the last viewed document or folder."""
    from brief.annotate.session import AnnotationSession
    from brief.config import get_settings

    con = console or globals()["console"]
    settings = get_settings()
    session = AnnotationSession(
        persistence,
        instruction=settings.export.instruction,
        folder_instruction=settings.export.folder_instruction,
    )
    await session.restore()

    if not session.has_annotations():
        con.print("[yellow]No annotations to export.[/]")
        return None

    text = await session.export_text()
    # Plain print: export text must not be styled by rich markup
    con.print(text, markup=False, highlight=False)
    return text


async def _cmd_clear(
    persistence: PersistenceLayer,
    *,
    console: Console | None = None,
) -> int:
    """Delete every persisted annotation, folder index and pointer."""
    con = console or globals()["console"]
    removed = await persistence.clear_all_state()
    if removed:
        con.print(f"[green]Cleared[/] {removed} stored entries")
    else:
        con.print("[yellow]Nothing stored.[/]")
    return removed


def _run(command: str) -> None:
    from brief.annotate.persistence import (
        close_persistence_layer,
        get_persistence_layer,
    )
    from brief.storage import StorageError

    async def _main() -> None:
        persistence = get_persistence_layer()
        try:
            if command == "export":
                await _cmd_export(persistence)
            else:
                await _cmd_clear(persistence)
        finally:
            await close_persistence_layer()

    try:
        asyncio.run(_main())
    except StorageError as exc:
        console.print(f"[red]Error:[/] {exc}")
        sys.exit(1)


def export_annotations() -> None:
    """Print the persisted change request to stdout.

    Usage:
        brief-export
    """
    argparse.ArgumentParser(
        prog="brief-export",
        description="Print the change request for the last viewed document.",
    ).parse_args(sys.argv[1:])
    _run("export")


def clear_annotations() -> None:
    """Delete all persisted reader state.

    Usage:
        brief-clear [--yes]
    """
    parser = argparse.ArgumentParser(
        prog="brief-clear",
        description="Delete all persisted annotations and reader state.",
    )
    parser.add_argument("--yes", action="store_true", help="Skip confirmation")
    args = parser.parse_args(sys.argv[1:])

    if not args.yes:
        answer = console.input(r"Delete all stored annotations? \[y/N] ")
        if answer.strip().lower() not in {"y", "yes"}:
            console.print("[dim]Aborted.[/]")
            return
    _run("clear")
