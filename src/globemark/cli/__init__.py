"""CLI module for GLOBEMARK.

Provides the command-line interface for clustering point files, inspecting
per-frame visibility, listing remote images and geocoding addresses.
"""

from __future__ import annotations

from globemark.cli.main import app

__all__ = ["app"]
