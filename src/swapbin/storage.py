"""Raw Parquet output of synced transactions.

Each sync run writes its transactions to
``<raw_data_path>/<partner_id>/transactions_<timestamp>.parquet``. Amounts
are stored as exact decimal text and the source record as JSON text.
"""

import json
import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import polars as pl

from .schemas import CanonicalTransaction

logger = logging.getLogger(__name__)

TRANSACTION_SCHEMA: dict[str, pl.DataType] = {
    "partner_id": pl.Utf8(),
    "status": pl.Utf8(),
    "order_id": pl.Utf8(),
    "deposit_txid": pl.Utf8(),
    "deposit_address": pl.Utf8(),
    "deposit_currency": pl.Utf8(),
    "deposit_amount": pl.Utf8(),
    "payout_txid": pl.Utf8(),
    "payout_address": pl.Utf8(),
    "payout_currency": pl.Utf8(),
    "payout_amount": pl.Utf8(),
    "timestamp": pl.Float64(),
    "iso_date": pl.Utf8(),
    "usd_value": pl.Float64(),
    "raw_tx": pl.Utf8(),
    "extracted_at": pl.Utf8(),
}


def transactions_to_frame(
    partner_id: str, transactions: Sequence[CanonicalTransaction]
) -> pl.DataFrame:
    """Convert canonical transactions into a flat DataFrame."""
    now_iso = datetime.now().isoformat()
    rows = []
    for tx in transactions:
        row = tx.model_dump(mode="python")
        row["partner_id"] = partner_id
        row["deposit_amount"] = str(tx.deposit_amount)
        row["payout_amount"] = str(tx.payout_amount)
        row["raw_tx"] = json.dumps(tx.raw_tx, default=str)
        row["extracted_at"] = now_iso
        rows.append(row)

    return pl.DataFrame(rows, schema=TRANSACTION_SCHEMA)


def write_transactions(
    partner_id: str,
    transactions: Sequence[CanonicalTransaction],
    raw_data_path: Path,
) -> Path | None:
    """Write one run's transactions to a Parquet file.

    Returns:
        Path | None: The written file, or None when there was nothing to write
    """
    if not transactions:
        logger.debug(f"No {partner_id} transactions to write")
        return None

    output_dir = raw_data_path / partner_id
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = (
        output_dir / f"transactions_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}.parquet"
    )

    df = transactions_to_frame(partner_id, transactions)
    df.write_parquet(output_path)
    logger.info(f"Saved {df.height} {partner_id} transactions to {output_path}")
    return output_path
