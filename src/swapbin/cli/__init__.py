"""SwapBin CLI package.

This package provides a unified command-line interface for syncing partner
transactions, inspecting stored cursors and loading synced data into DuckDB.
"""

from .main import app, main

__all__ = ["app", "main"]
