"""SwapBin: incremental ingestion of exchange partner transactions.

This package pulls completed swaps from crypto exchange partner APIs and
normalizes them into one canonical transaction shape:
- Resumable pagination with offset and watermark cursors
- Two-phase schema validation of partner records
- DuckDB cursor state and Parquet raw output
- Typer CLI for syncing, loading and inspecting cursors
"""

__version__ = "0.1.0"
