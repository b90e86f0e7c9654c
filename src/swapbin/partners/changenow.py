"""ChangeNOW partner connector.

ChangeNOW's affiliate transaction list makes no ordering promise, so this
connector resumes from a page offset. Transactions can appear before they
are final, which is why the offset is rolled back at the end of every run.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from urllib.parse import quote, urlencode

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from ..cursor import Cursor, OffsetCursor
from ..schemas import CanonicalTransaction, instant_fields, parse_iso_datetime
from .base import PartnerConnector

CHANGENOW_API_URL = "https://changenow.io/api/v1/transactions"


class ChangeNowProbe(BaseModel):
    """Minimal shape used to decide whether a record is finalized."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: StrictStr
    payin_hash: Any = Field(default=None, alias="payinHash")
    amount_send: Any = Field(default=None, alias="amountSend")
    amount_receive: Any = Field(default=None, alias="amountReceive")


class ChangeNowTransaction(BaseModel):
    """Full record contract for a finished ChangeNOW exchange."""

    model_config = ConfigDict(extra="ignore", strict=True, populate_by_name=True)

    id: str
    updated_at: str = Field(..., alias="updatedAt")
    payin_hash: str = Field(..., alias="payinHash")
    payout_hash: str = Field(..., alias="payoutHash")
    payin_address: str = Field(..., alias="payinAddress")
    from_currency: str = Field(..., alias="fromCurrency")
    amount_send: float = Field(..., alias="amountSend", allow_inf_nan=False)
    payout_address: str = Field(..., alias="payoutAddress")
    to_currency: str = Field(..., alias="toCurrency")
    amount_receive: float = Field(..., alias="amountReceive", allow_inf_nan=False)

    @field_validator("updated_at")
    @classmethod
    def validate_updated_at(cls, v: str) -> str:
        """The update time must be a parseable ISO-8601 timestamp."""
        parse_iso_datetime(v)
        return v


def map_changenow_transaction(
    tx: ChangeNowTransaction, raw: dict[str, Any]
) -> CanonicalTransaction:
    """Map a finished ChangeNOW exchange to the canonical shape."""
    return CanonicalTransaction(
        status="complete",
        order_id=tx.id,
        deposit_txid=tx.payin_hash,
        deposit_address=tx.payin_address,
        deposit_currency=tx.from_currency.upper(),
        deposit_amount=Decimal(str(tx.amount_send)),
        payout_txid=tx.payout_hash,
        payout_address=tx.payout_address,
        payout_currency=tx.to_currency.upper(),
        payout_amount=Decimal(str(tx.amount_receive)),
        usd_value=None,
        raw_tx=raw,
        **instant_fields(parse_iso_datetime(tx.updated_at)),
    )


class ChangeNowConnector(PartnerConnector):
    """Offset-cursor connector for the ChangeNOW transaction list."""

    partner_id = "changenow"
    plugin_name = "ChangeNOW"
    cursor_type = OffsetCursor
    probe_model = ChangeNowProbe
    strict_model = ChangeNowTransaction

    def initial_cursor(self) -> Cursor:
        return OffsetCursor(offset=0)

    def page_url(self, credentials: Mapping[str, str], offset: int) -> str:
        # The API key is part of the path on this endpoint
        api_key = quote(credentials["api_key"], safe="")
        query = urlencode({"limit": self.config.page_size, "offset": offset})
        return f"{CHANGENOW_API_URL}/{api_key}?{query}"

    def is_final(self, probe: Any) -> bool:
        return (
            probe.status == "finished"
            and probe.payin_hash is not None
            and probe.amount_send is not None
            and probe.amount_receive is not None
        )

    def map_record(self, record: Any, raw: dict[str, Any]) -> CanonicalTransaction:
        return map_changenow_transaction(record, raw)
