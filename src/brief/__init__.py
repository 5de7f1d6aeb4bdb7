"""Brief - strike-through and comment annotations over rendered markdown.

Readers mark up a rendered document (or a folder of documents) and export
the marks as a change request for whoever applies the edits.
"""

import logging
import os
import subprocess
from logging.handlers import RotatingFileHandler
from pathlib import Path

__version__ = "0.1.0"


def get_git_commit() -> str:
    """Get the short git commit hash, or 'unknown' if not in a git repo."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
            timeout=5,
        )
        return result.stdout.strip()
    except (
        subprocess.CalledProcessError,
        FileNotFoundError,
        subprocess.TimeoutExpired,
    ):
        return "unknown"


def get_version_string() -> str:
    """Get version string with git commit for dev builds."""
    commit = get_git_commit()
    return f"{__version__}+{commit}"


def _setup_logging(log_dir: Path) -> None:
    """Configure logging to both console and rotating file."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"brief.{os.getpid()}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # File handler - detailed logging with rotation (10MB, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    # Console handler - less verbose
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_formatter = logging.Formatter("%(levelname)s: %(message)s")
    console_handler.setFormatter(console_formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.info("Logging configured. Log file: %s", log_file.absolute())


def main() -> None:
    """Entry point for the Brief reader.

    ``brief PATH`` opens a markdown file (single-file mode) or a directory
    of markdown files (folder mode). Without a path the last viewed state is
    restored from storage.
    """
    import argparse

    from nicegui import app, ui

    from brief.config import get_settings
    from brief.pages.reader import set_startup_source
    from brief.annotate.persistence import close_persistence_layer

    parser = argparse.ArgumentParser(prog="brief", description=main.__doc__)
    parser.add_argument("path", nargs="?", type=Path, help="File or folder")
    args, _unknown = parser.parse_known_args()

    settings = get_settings()
    _setup_logging(settings.app.log_dir)

    if args.path is not None:
        if not args.path.exists():
            print(f"Error: {args.path} does not exist")
            raise SystemExit(1)
        set_startup_source(args.path)

    import brief.pages  # noqa: F401 - registers routes

    @app.on_shutdown
    async def shutdown() -> None:
        # Flush fire-and-forget writes before the event loop goes away
        await close_persistence_layer()

    port = settings.app.port
    storage_secret = settings.app.storage_secret.get_secret_value()

    print(f"Brief v{get_version_string()}")
    print(f"Starting reader on http://127.0.0.1:{port}")

    ui.run(
        host="127.0.0.1",
        port=port,
        title="Brief",
        reload=settings.app.reload,
        storage_secret=storage_secret,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
