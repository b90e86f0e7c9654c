"""Canonical transaction schema shared by every partner connector.

Partner-specific raw schemas live next to their connectors; this module only
holds the normalized output shape and the timestamp helpers mappers use to
keep ``timestamp`` and ``iso_date`` derivable from each other.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CanonicalTransaction(BaseModel):
    """A finalized exchange transaction in the normalized record shape."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    status: Literal["complete"] = "complete"
    order_id: str = Field(..., description="Partner transaction identifier")

    deposit_txid: str
    deposit_address: str
    deposit_currency: str
    deposit_amount: Decimal

    payout_txid: str | None = None
    payout_address: str
    payout_currency: str
    payout_amount: Decimal

    timestamp: float = Field(..., description="Unix epoch seconds")
    iso_date: str = Field(..., description="ISO-8601 form of timestamp")
    usd_value: None = None

    raw_tx: dict[str, Any] = Field(default_factory=dict, repr=False)

    @field_validator("deposit_currency", "payout_currency")
    @classmethod
    def uppercase_ticker(cls, v: str) -> str:
        """Tickers are always stored upper-cased."""
        return v.upper()


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime.

    A trailing ``Z`` is accepted and naive values are taken as UTC.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def instant_fields(moment: datetime) -> dict[str, Any]:
    """Return the ``timestamp``/``iso_date`` pair for one instant.

    Both values come from the same datetime so
    ``parse_iso_datetime(iso_date).timestamp() == timestamp`` holds exactly.
    """
    moment = moment.astimezone(timezone.utc)
    return {"timestamp": moment.timestamp(), "iso_date": moment.isoformat()}


def epoch_to_instant(seconds: int | float) -> datetime:
    """Convert Unix epoch seconds into an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
