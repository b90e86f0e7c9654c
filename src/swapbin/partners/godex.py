"""Godex partner connector.

Godex's affiliate history is returned newest first, so this connector keeps
a timestamp watermark and stops paging once it reaches transactions older
than the watermark it resumed from.
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from ..cursor import Cursor, WatermarkCursor
from ..schemas import CanonicalTransaction, epoch_to_instant, instant_fields
from .base import PartnerConnector

GODEX_API_URL = "https://api.godex.io/api/v1/affiliate/history"


def _parse_decimal(value: str) -> Decimal:
    try:
        parsed = Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"not a decimal number: {value!r}") from e
    if not parsed.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return parsed


class GodexProbe(BaseModel):
    """Minimal shape used to decide whether a record is finalized."""

    model_config = ConfigDict(extra="ignore")

    status: StrictStr
    hash_in: Any = None
    deposit_amount: Any = None
    withdrawal_amount: Any = None


class GodexTransaction(BaseModel):
    """Full record contract for a successful Godex exchange.

    Godex encodes amounts and the creation time as strings.
    """

    model_config = ConfigDict(extra="ignore", strict=True)

    transaction_id: str
    status: str
    hash_in: str
    deposit: str
    coin_from: str
    deposit_amount: str
    withdrawal: str
    coin_to: str
    withdrawal_amount: str
    created_at: str = Field(..., description="Creation time, epoch seconds")

    @field_validator("deposit_amount", "withdrawal_amount")
    @classmethod
    def validate_numeric_string(cls, v: str) -> str:
        """Numeric strings must parse as finite decimals."""
        _parse_decimal(v)
        return v

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, v: str) -> str:
        """The creation time must be a representable epoch-seconds instant."""
        seconds = _parse_decimal(v)
        try:
            epoch_to_instant(int(seconds))
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError(f"not an epoch-seconds time: {v!r}") from e
        return v


def map_godex_transaction(
    tx: GodexTransaction, raw: dict[str, Any]
) -> CanonicalTransaction:
    """Map a successful Godex exchange to the canonical shape.

    Godex exposes no payout hash, and the deposit hash doubles as the order id.
    """
    created = int(_parse_decimal(tx.created_at))
    return CanonicalTransaction(
        status="complete",
        order_id=tx.hash_in,
        deposit_txid=tx.hash_in,
        deposit_address=tx.deposit,
        deposit_currency=tx.coin_from.upper(),
        deposit_amount=_parse_decimal(tx.deposit_amount),
        payout_txid=None,
        payout_address=tx.withdrawal,
        payout_currency=tx.coin_to.upper(),
        payout_amount=_parse_decimal(tx.withdrawal_amount),
        usd_value=None,
        raw_tx=raw,
        **instant_fields(epoch_to_instant(created)),
    )


class GodexConnector(PartnerConnector):
    """Watermark-cursor connector for the Godex affiliate history."""

    partner_id = "godex"
    plugin_name = "Godex"
    cursor_type = WatermarkCursor
    probe_model = GodexProbe
    strict_model = GodexTransaction

    def initial_cursor(self) -> Cursor:
        return WatermarkCursor.lookback(self.config.lookback_days)

    def page_url(self, credentials: Mapping[str, str], offset: int) -> str:
        query = urlencode({"limit": self.config.page_size, "offset": offset})
        return f"{GODEX_API_URL}?{query}"

    def page_headers(self, credentials: Mapping[str, str]) -> dict[str, str]:
        return {"Authorization": credentials["api_key"]}

    def is_final(self, probe: Any) -> bool:
        return (
            probe.status == "success"
            and probe.hash_in is not None
            and probe.deposit_amount is not None
            and probe.withdrawal_amount is not None
        )

    def map_record(self, record: Any, raw: dict[str, Any]) -> CanonicalTransaction:
        return map_godex_transaction(record, raw)
