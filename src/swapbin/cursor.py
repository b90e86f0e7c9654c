"""Resumption cursors persisted between partner sync runs.

A cursor is one of two shapes:

- ``OffsetCursor``: a page offset into a list endpoint that makes no
  ordering promise. It is rolled back by a margin at the end of a run so
  the next run re-scans records that were not final yet.
- ``WatermarkCursor``: epoch seconds of the newest finalized transaction
  seen, for endpoints that return records newest first.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class OffsetCursor(BaseModel):
    """Page offset into an unordered transaction list."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["offset"] = "offset"
    offset: int = Field(default=0, ge=0, description="Records to skip")

    def rolled_back(self, margin: int) -> "OffsetCursor":
        """Return a cursor moved back by ``margin`` records, clamped at zero."""
        return OffsetCursor(offset=max(0, self.offset - margin))


class WatermarkCursor(BaseModel):
    """Epoch-seconds watermark of the newest finalized transaction."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["watermark"] = "watermark"
    timestamp: float = Field(..., ge=0, description="Unix epoch seconds")

    @classmethod
    def lookback(cls, days: int, now: datetime | None = None) -> "WatermarkCursor":
        """Create the first-run watermark ``days`` before ``now``."""
        now = now or datetime.now(timezone.utc)
        return cls(timestamp=float(int((now - timedelta(days=days)).timestamp())))


Cursor = OffsetCursor | WatermarkCursor


def cursor_to_dict(cursor: Cursor) -> dict[str, Any]:
    """Serialize a cursor into a JSON-compatible mapping."""
    return cursor.model_dump(mode="json")


def cursor_from_dict(data: dict[str, Any]) -> Cursor:
    """Rebuild a cursor from its serialized mapping.

    Accepts the tagged form produced by :func:`cursor_to_dict` as well as the
    untagged legacy settings shapes ``{"offset": n}`` and
    ``{"latestTimeStamp": t}``.

    Raises:
        ValueError: If the mapping matches neither cursor shape
    """
    kind = data.get("kind")
    if kind == "offset" or (kind is None and "offset" in data):
        return OffsetCursor(offset=int(data["offset"]))
    if kind == "watermark":
        return WatermarkCursor(timestamp=float(data["timestamp"]))
    if kind is None and "latestTimeStamp" in data:
        return WatermarkCursor(timestamp=float(data["latestTimeStamp"]))
    raise ValueError(f"Unrecognized cursor state: {data!r}")


def describe_cursor(cursor: Cursor) -> str:
    """Human readable one-liner for logs and the CLI."""
    match cursor:
        case OffsetCursor(offset=offset):
            return f"offset {offset}"
        case WatermarkCursor(timestamp=timestamp):
            moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
            return f"watermark {timestamp} ({moment.isoformat()})"
