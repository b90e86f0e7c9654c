"""Parquet transaction loader for DuckDB.

Loads the raw Parquet files written by sync runs into a single
``raw_partner_transactions`` table. Rollback windows mean the same order can
be synced more than once, so rows are de-duplicated on
``(partner_id, order_id)``, keeping the most recent extraction.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb

from ..config import get_database_path, get_raw_data_path

logger = logging.getLogger(__name__)

TRANSACTIONS_TABLE = "raw_partner_transactions"


@dataclass
class LoadingConfig:
    """Configuration for Parquet loading operations."""

    source_path: Path = field(default_factory=lambda: get_raw_data_path())
    database_path: Path = field(default_factory=lambda: get_database_path())
    incremental: bool = True
    create_database_dir: bool = True


class TransactionLoader:
    """Loader for synced transaction Parquet files into DuckDB."""

    def __init__(self, config: LoadingConfig | None = None):
        """Initialize the loader.

        Args:
            config: Loading configuration options
        """
        self.config = config or LoadingConfig()

        if self.config.create_database_dir:
            self.config.database_path.parent.mkdir(parents=True, exist_ok=True)

    def find_parquet_files(self) -> list[Path]:
        """List every transaction Parquet file under the source directory."""
        return sorted(self.config.source_path.glob("*/transactions_*.parquet"))

    def load_all_parquet_files(self) -> dict[str, int]:
        """Load all transaction Parquet files into DuckDB.

        Returns:
            dict: Mapping of table name to the row count after loading

        Raises:
            FileNotFoundError: If the source directory does not exist
        """
        logger.info("Starting Parquet file loading into DuckDB")
        logger.info(f"Source: {self.config.source_path}")
        logger.info(f"Database: {self.config.database_path}")
        logger.info(
            f"Mode: {'incremental' if self.config.incremental else 'full refresh'}"
        )

        if not self.config.source_path.exists():
            raise FileNotFoundError(
                f"Source path does not exist: {self.config.source_path}"
            )

        parquet_files = self.find_parquet_files()
        if not parquet_files:
            logger.warning(f"No transaction Parquet files found in {self.config.source_path}")
            return {}

        logger.info(f"Found {len(parquet_files)} transaction files")
        with duckdb.connect(str(self.config.database_path)) as conn:  # type: ignore[misc]
            count = self._load_transactions_table(conn, parquet_files)

        logger.info("✅ Parquet loading completed successfully")
        return {TRANSACTIONS_TABLE: count}

    def _load_transactions_table(
        self, conn: duckdb.DuckDBPyConnection, parquet_files: list[Path]
    ) -> int:
        """Load transaction files into the transactions table.

        Args:
            conn: DuckDB connection
            parquet_files: Transaction Parquet files to read

        Returns:
            int: Number of records in the final table
        """
        file_list = ", ".join(f"'{path.as_posix()}'" for path in parquet_files)
        latest_rows = f"""
            SELECT *
            FROM read_parquet([{file_list}], union_by_name = true)
            QUALIFY row_number() OVER (
                PARTITION BY partner_id, order_id
                ORDER BY extracted_at DESC
            ) = 1
        """  # noqa: S608  # paths come from a local directory listing

        if self.config.incremental and self._table_exists(conn):
            logger.info("Using incremental loading for transactions")
            conn.sql(f"""
                INSERT INTO {TRANSACTIONS_TABLE}
                SELECT incoming.*
                FROM ({latest_rows}) AS incoming
                WHERE NOT EXISTS (
                    SELECT 1
                    FROM {TRANSACTIONS_TABLE} AS existing
                    WHERE existing.partner_id = incoming.partner_id
                      AND existing.order_id = incoming.order_id
                )
            """)  # noqa: S608
        else:
            logger.info("Rebuilding transactions table")
            conn.sql(f"""
                CREATE OR REPLACE TABLE {TRANSACTIONS_TABLE} AS
                {latest_rows}
            """)  # noqa: S608

        result = conn.sql(f"SELECT COUNT(*) FROM {TRANSACTIONS_TABLE}").fetchone()  # type: ignore[misc] # noqa: S608
        count = result[0] if result else 0
        logger.info(f"✅ Transactions table now contains {count} records")
        return count

    def _table_exists(self, conn: duckdb.DuckDBPyConnection) -> bool:
        result = conn.execute(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [TRANSACTIONS_TABLE],
        ).fetchone()  # type: ignore[misc]
        return (result[0] if result else 0) > 0

    def get_database_status(self) -> dict[str, dict[str, Any]]:
        """Get row counts for the tables in the database.

        Raises:
            FileNotFoundError: If the database file does not exist
        """
        if not self.config.database_path.exists():
            raise FileNotFoundError(
                f"Database file does not exist: {self.config.database_path}"
            )

        status: dict[str, dict[str, Any]] = {}
        with duckdb.connect(str(self.config.database_path)) as conn:  # type: ignore[misc]
            tables = conn.sql("""
                SELECT table_name, estimated_size
                FROM duckdb_tables()
                WHERE schema_name = 'main'
                ORDER BY table_name
            """).fetchall()

            for table_name, size in tables:
                if not table_name.isidentifier():
                    logger.warning(f"Skipping invalid table name: {table_name}")
                    continue

                result = conn.sql(f"SELECT COUNT(*) FROM {table_name}").fetchone()  # type: ignore[misc] # noqa: S608  # table_name validated as safe identifier
                count = result[0] if result else 0
                status[table_name] = {"row_count": count, "estimated_size": size}

        return status
