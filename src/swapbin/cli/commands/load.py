"""Data loading commands for SwapBin CLI.

This module provides commands for loading synced Parquet files into DuckDB.
"""

import logging
from pathlib import Path

import typer

from swapbin.config import get_database_path, get_raw_data_path
from swapbin.loaders import LoadingConfig, TransactionLoader
from swapbin.logging import setup_logging

app = typer.Typer(help="Load synced transaction files into DuckDB")
logger = logging.getLogger(__name__)


@app.command("parquet")
def load_parquet(
    source_path: Path = typer.Option(
        None,
        "--source",
        "-s",
        help="Source directory containing partner Parquet files (default: from config)",
    ),
    database_path: Path = typer.Option(
        None,
        "--database",
        "-d",
        help="Target DuckDB database file (default: from config)",
    ),
    incremental: bool = typer.Option(
        True,
        "--incremental/--full-refresh",
        help="Use incremental loading (skip orders already loaded)",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
) -> None:
    """Load synced transaction Parquet files into DuckDB.

    Args:
        source_path: Directory containing per-partner Parquet directories
        database_path: Path to DuckDB database file
        incremental: Whether to skip orders that are already loaded
        verbose: Enable debug level logging
    """
    setup_logging(cli_mode=True, verbose=verbose)

    try:
        config = LoadingConfig(
            source_path=source_path or get_raw_data_path(),
            database_path=database_path or get_database_path(),
            incremental=incremental,
        )
        loader = TransactionLoader(config)
        results = loader.load_all_parquet_files()
    except FileNotFoundError as e:
        logger.error(f"❌ {e}")
        raise typer.Exit(1) from e
    except Exception as e:
        logger.error(f"❌ Failed to load Parquet files: {e}")
        raise typer.Exit(1) from e

    if results:
        logger.info("📊 Loading Results:")
        for table_name, count in results.items():
            logger.info(f"  {table_name}: {count:,} records")
    else:
        logger.warning("No data was loaded")


@app.command("status")
def load_status(
    database_path: Path = typer.Option(
        None,
        "--database",
        "-d",
        help="DuckDB database file to check (default: from config)",
    ),
) -> None:
    """Show the row counts of tables in DuckDB.

    Args:
        database_path: Path to DuckDB database file
    """
    setup_logging(cli_mode=True)

    try:
        config = LoadingConfig(database_path=database_path or get_database_path())
        status = TransactionLoader(config).get_database_status()
    except FileNotFoundError as e:
        logger.error(f"❌ {e}")
        raise typer.Exit(1) from e
    except Exception as e:
        logger.error(f"❌ Failed to check database status: {e}")
        raise typer.Exit(1) from e

    logger.info("📊 DuckDB Data Status")
    logger.info("=" * 50)

    if not status:
        logger.info("No tables found in database")
        return

    for table_name, info in status.items():
        logger.info(f"  {table_name}: {info['row_count']:,} rows ({info['estimated_size']} bytes)")
