"""NiceGUI page routes for Brief."""

# Import pages to register routes
from brief.pages import reader

__all__ = ["reader"]
