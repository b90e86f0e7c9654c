"""DuckDB persistence of partner cursors between sync runs.

Connectors never touch storage: the sync runner loads a partner's cursor from
here before a run and saves the returned cursor after it.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

import duckdb

from .cursor import Cursor, cursor_from_dict, cursor_to_dict

logger = logging.getLogger(__name__)

STATE_TABLE = "partner_sync_state"


@dataclass
class PartnerState:
    """A persisted cursor with the bookkeeping of the run that produced it."""

    partner_id: str
    cursor: Cursor
    last_sync_timestamp: datetime
    transactions_synced: int
    sync_job_id: str


class CursorStateStore:
    """Reads and writes partner cursors in a DuckDB table."""

    def __init__(self, database_path: Path, create_database_dir: bool = True):
        """Initialize the store.

        Args:
            database_path: DuckDB database file
            create_database_dir: Create the database directory if missing
        """
        self.database_path = database_path
        if create_database_dir:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> duckdb.DuckDBPyConnection:
        conn = duckdb.connect(str(self.database_path))  # type: ignore[misc]
        conn.sql(f"""
            CREATE TABLE IF NOT EXISTS {STATE_TABLE} (
                partner_id VARCHAR PRIMARY KEY,
                cursor_json VARCHAR NOT NULL,
                last_sync_timestamp TIMESTAMP,
                transactions_synced INTEGER,
                sync_job_id VARCHAR
            )
        """)  # type: ignore[misc]
        return conn

    def load(self, partner_id: str) -> Cursor | None:
        """Return the stored cursor for ``partner_id``, or None if never synced."""
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT cursor_json FROM {STATE_TABLE} WHERE partner_id = ?",  # noqa: S608  # constant table name
                [partner_id],
            ).fetchone()  # type: ignore[misc]

        if not row:
            logger.debug(f"No stored cursor for {partner_id}")
            return None
        return cursor_from_dict(json.loads(row[0]))

    def save(self, partner_id: str, cursor: Cursor, transaction_count: int) -> str:
        """Persist the cursor returned by a completed run.

        Returns:
            str: Job id recorded with this state
        """
        job_id = str(uuid4())
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT OR REPLACE INTO {STATE_TABLE}
                (partner_id, cursor_json, last_sync_timestamp,
                 transactions_synced, sync_job_id)
                VALUES (?, ?, ?, ?, ?)
                """,  # noqa: S608  # constant table name
                [
                    partner_id,
                    json.dumps(cursor_to_dict(cursor)),
                    datetime.now(),
                    transaction_count,
                    job_id,
                ],
            )
        logger.info(f"Saved {partner_id} cursor (job_id: {job_id})")
        return job_id

    def reset(self, partner_id: str) -> bool:
        """Forget the cursor for ``partner_id`` so the next run starts fresh.

        Returns:
            bool: True if a stored cursor was removed
        """
        with self._connect() as conn:
            existing = conn.execute(
                f"SELECT COUNT(*) FROM {STATE_TABLE} WHERE partner_id = ?",  # noqa: S608  # constant table name
                [partner_id],
            ).fetchone()  # type: ignore[misc]
            conn.execute(
                f"DELETE FROM {STATE_TABLE} WHERE partner_id = ?",  # noqa: S608  # constant table name
                [partner_id],
            )

        removed = bool(existing and existing[0])
        if removed:
            logger.info(f"Reset stored cursor for {partner_id}")
        return removed

    def list_states(self) -> list[PartnerState]:
        """Return every stored partner state ordered by partner id."""
        with self._connect() as conn:
            rows: list[tuple[Any, ...]] = conn.sql(f"""
                SELECT partner_id, cursor_json, last_sync_timestamp,
                       transactions_synced, sync_job_id
                FROM {STATE_TABLE}
                ORDER BY partner_id
            """).fetchall()  # type: ignore[misc] # noqa: S608  # constant table name

        return [
            PartnerState(
                partner_id=partner_id,
                cursor=cursor_from_dict(json.loads(cursor_json)),
                last_sync_timestamp=last_sync,
                transactions_synced=count,
                sync_job_id=job_id,
            )
            for partner_id, cursor_json, last_sync, count, job_id in rows
        ]
