"""Data loaders for SwapBin.

This package loads synced Parquet files into DuckDB tables.
"""

from .transaction_loader import LoadingConfig, TransactionLoader

__all__ = ["LoadingConfig", "TransactionLoader"]
