"""Tests for the Godex connector: validation, mapping and watermark cursors."""

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import pytest

from swapbin.config import SyncConfig
from swapbin.cursor import OffsetCursor, WatermarkCursor
from swapbin.http import FetchFailure
from swapbin.partners import GodexConnector, SchemaViolation, SyncState
from swapbin.schemas import parse_iso_datetime

CREDENTIALS = {"api_key": "gx-key"}
T = 1_709_294_400


class TestGodexValidation:
    """Two-phase validation of raw Godex records."""

    @pytest.fixture
    def connector(self) -> GodexConnector:
        return GodexConnector()

    @pytest.mark.unit
    @pytest.mark.parametrize("status", ["wait", "overdue", "error", "refund"])
    def test_non_success_status_skipped(
        self,
        connector: GodexConnector,
        godex_record: Callable[..., dict[str, Any]],
        status: str,
    ) -> None:
        assert connector.validate_record(godex_record(T, status=status)) is None

    @pytest.mark.unit
    def test_success_without_deposit_hash_skipped(
        self, connector: GodexConnector, godex_record: Callable[..., dict[str, Any]]
    ) -> None:
        assert connector.validate_record(godex_record(T, hash_in=None)) is None

    @pytest.mark.unit
    def test_success_with_bad_amount_raises(
        self, connector: GodexConnector, godex_record: Callable[..., dict[str, Any]]
    ) -> None:
        with pytest.raises(SchemaViolation):
            connector.validate_record(godex_record(T, deposit_amount="lots"))

    @pytest.mark.unit
    def test_success_with_numeric_amount_raises(
        self, connector: GodexConnector, godex_record: Callable[..., dict[str, Any]]
    ) -> None:
        """Godex sends amounts as strings; a bare number means the contract moved."""
        with pytest.raises(SchemaViolation):
            connector.validate_record(godex_record(T, withdrawal_amount=98.12))

    @pytest.mark.unit
    @pytest.mark.parametrize("created_at", [str(T * 1000 + 5), "1e30", "NaN"])
    def test_unrepresentable_creation_time_raises(
        self,
        connector: GodexConnector,
        godex_record: Callable[..., dict[str, Any]],
        created_at: str,
    ) -> None:
        """Millisecond or absurd times are a contract break, not a mapper crash."""
        with pytest.raises(SchemaViolation):
            connector.validate_record(godex_record(T, created_at=created_at))

    @pytest.mark.unit
    def test_millisecond_time_does_not_escape_the_run(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        page = [godex_record(T, created_at=str(T * 1000 + 5))]
        connector = GodexConnector(fetcher=make_fetcher([page]))

        with pytest.raises(SchemaViolation):
            connector.run(CREDENTIALS, WatermarkCursor(timestamp=T))

    @pytest.mark.unit
    def test_success_missing_coin_raises(
        self, connector: GodexConnector, godex_record: Callable[..., dict[str, Any]]
    ) -> None:
        record = godex_record(T)
        del record["coin_to"]
        with pytest.raises(SchemaViolation):
            connector.validate_record(record)


class TestGodexMapping:
    """Mapping successful records to canonical transactions."""

    @pytest.mark.unit
    def test_maps_all_fields(self, godex_record: Callable[..., dict[str, Any]]) -> None:
        connector = GodexConnector()
        raw = godex_record(T, index=3)
        tx = connector.map_record(connector.validate_record(raw), raw)

        assert tx.order_id == "hash_in_3"
        assert tx.deposit_txid == "hash_in_3"
        assert tx.deposit_address == "LdepositAddress"
        assert tx.deposit_currency == "LTC"
        assert tx.deposit_amount == Decimal("1.50000000")
        assert tx.payout_txid is None
        assert tx.payout_address == "TwithdrawalAddress"
        assert tx.payout_currency == "USDT"
        assert tx.payout_amount == Decimal("98.12")
        assert tx.timestamp == T
        assert tx.iso_date == datetime(2024, 3, 1, 12, tzinfo=timezone.utc).isoformat()
        assert parse_iso_datetime(tx.iso_date).timestamp() == tx.timestamp


class TestGodexSync:
    """Watermark pagination against a scripted endpoint."""

    @pytest.mark.unit
    def test_requests_carry_authorization_header(
        self, make_fetcher: Callable[[list[Any]], Any]
    ) -> None:
        fetcher = make_fetcher([[]])
        GodexConnector(fetcher=fetcher).run(CREDENTIALS, WatermarkCursor(timestamp=T))

        url, headers = fetcher.calls[0]
        assert url == "https://api.godex.io/api/v1/affiliate/history?limit=100&offset=0"
        assert headers == {"Authorization": "gx-key"}

    @pytest.mark.unit
    def test_caught_up_after_processing_whole_page(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        """A full page reaching past the watermark stops without another fetch."""
        page = [
            godex_record(T + 50, index=0),
            godex_record(T + 30, index=1),
            godex_record(T - 10, index=2),
        ]
        fetcher = make_fetcher([page, [godex_record(T + 99, index=9)] * 3])
        connector = GodexConnector(
            config=SyncConfig(page_size=3), fetcher=fetcher
        )

        outcome = connector.sync(CREDENTIALS, WatermarkCursor(timestamp=T))

        assert outcome.state is SyncState.STOPPED_CAUGHT_UP
        assert len(fetcher.calls) == 1
        assert [tx.timestamp for tx in outcome.transactions] == [T + 50, T + 30]
        assert outcome.cursor == WatermarkCursor(timestamp=T + 50)

    @pytest.mark.unit
    def test_keeps_paging_while_newer_than_watermark(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        pages = [
            [godex_record(T + 100 - i, index=i) for i in range(3)],
            [godex_record(T + 50 - i, index=10 + i) for i in range(3)],
            [godex_record(T + 10, index=20)],
        ]
        fetcher = make_fetcher(pages)
        connector = GodexConnector(config=SyncConfig(page_size=3), fetcher=fetcher)

        outcome = connector.sync(CREDENTIALS, WatermarkCursor(timestamp=T))

        assert outcome.state is SyncState.STOPPED_EXHAUSTED
        assert outcome.pages_fetched == 3
        assert outcome.final_offset == 9
        assert fetcher.urls[2].endswith("offset=6")
        assert len(outcome.transactions) == 7
        assert outcome.cursor == WatermarkCursor(timestamp=T + 100)

    @pytest.mark.unit
    def test_unsuccessful_records_do_not_trigger_caught_up(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        pages = [
            [
                godex_record(T + 20, index=0),
                godex_record(T - 500, index=1, status="overdue"),
            ],
            [godex_record(T + 5, index=2)],
        ]
        fetcher = make_fetcher(pages)
        connector = GodexConnector(config=SyncConfig(page_size=2), fetcher=fetcher)

        outcome = connector.sync(CREDENTIALS, WatermarkCursor(timestamp=T))

        assert len(fetcher.calls) == 2
        assert outcome.state is SyncState.STOPPED_EXHAUSTED

    @pytest.mark.unit
    def test_watermark_unchanged_when_nothing_emitted(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        fetcher = make_fetcher([[godex_record(T + 5, status="wait")]])
        result = GodexConnector(fetcher=fetcher).run(
            CREDENTIALS, WatermarkCursor(timestamp=T)
        )
        assert result.transactions == []
        assert result.cursor == WatermarkCursor(timestamp=T)

    @pytest.mark.unit
    def test_resuming_from_returned_cursor_never_re_emits(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        history = [godex_record(T + 100 - 10 * i, index=i) for i in range(8)]
        config = SyncConfig(page_size=5)

        first = GodexConnector(
            config=config, fetcher=make_fetcher([history[3:8]])
        ).run(CREDENTIALS, WatermarkCursor(timestamp=T))

        # Two newer transactions arrive before the second run
        newer = [godex_record(T + 200, index=90), godex_record(T + 150, index=91)]
        second_history = newer + history
        second = GodexConnector(
            config=config,
            fetcher=make_fetcher([second_history[0:5], second_history[5:10]]),
        ).run(CREDENTIALS, first.cursor)

        first_ids = {tx.order_id for tx in first.transactions}
        second_ids = {tx.order_id for tx in second.transactions}
        assert first_ids
        assert first_ids.isdisjoint(second_ids)
        assert second_ids == {"hash_in_90", "hash_in_91", "hash_in_0", "hash_in_1", "hash_in_2"}

    @pytest.mark.unit
    def test_first_run_uses_lookback_window(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        now = int(datetime.now(timezone.utc).timestamp())
        page = [
            godex_record(now - 3600, index=0),
            godex_record(now - 10 * 86400, index=1),
        ]
        connector = GodexConnector(
            config=SyncConfig(lookback_days=5), fetcher=make_fetcher([page])
        )

        result = connector.run(CREDENTIALS, None)

        assert [tx.order_id for tx in result.transactions] == ["hash_in_0"]
        assert result.cursor == WatermarkCursor(timestamp=now - 3600)

    @pytest.mark.unit
    def test_missing_credentials_returns_input_cursor(
        self, make_fetcher: Callable[[list[Any]], Any]
    ) -> None:
        fetcher = make_fetcher([])
        result = GodexConnector(fetcher=fetcher).run(
            {"api_key": ""}, WatermarkCursor(timestamp=T)
        )
        assert result.cursor == WatermarkCursor(timestamp=T)
        assert result.transactions == []
        assert fetcher.calls == []

    @pytest.mark.unit
    def test_fetch_failure_then_resume_never_re_emits(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        page = [godex_record(T + 50 - i, index=i) for i in range(3)]
        config = SyncConfig(page_size=3)

        first = GodexConnector(
            config=config, fetcher=make_fetcher([page, FetchFailure("url", "HTTP 502")])
        ).sync(CREDENTIALS, WatermarkCursor(timestamp=T))

        assert first.state is SyncState.STOPPED_FETCH_FAILED
        assert len(first.transactions) == 3
        assert first.cursor == WatermarkCursor(timestamp=T + 50)

        newer = godex_record(T + 60, index=9)
        second = GodexConnector(
            config=config, fetcher=make_fetcher([[newer, *page[:2]]])
        ).run(CREDENTIALS, first.cursor)

        first_ids = {tx.order_id for tx in first.transactions}
        second_ids = {tx.order_id for tx in second.transactions}
        assert first_ids.isdisjoint(second_ids)
        assert second_ids == {"hash_in_9"}

    @pytest.mark.unit
    def test_page_limit_bounds_the_walk(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        full_page = [godex_record(T + 100, index=i) for i in range(2)]
        fetcher = make_fetcher([full_page] * 10)
        connector = GodexConnector(
            config=SyncConfig(page_size=2, max_pages=3), fetcher=fetcher
        )

        outcome = connector.sync(CREDENTIALS, WatermarkCursor(timestamp=T))

        assert outcome.state is SyncState.STOPPED_PAGE_LIMIT
        assert len(fetcher.calls) == 3
        assert outcome.cursor == WatermarkCursor(timestamp=T + 100)

    @pytest.mark.unit
    def test_schema_violation_propagates(
        self,
        make_fetcher: Callable[[list[Any]], Any],
        godex_record: Callable[..., dict[str, Any]],
    ) -> None:
        page = [godex_record(T + 5, index=0), godex_record(T + 4, created_at=None)]
        connector = GodexConnector(fetcher=make_fetcher([page]))

        with pytest.raises(SchemaViolation):
            connector.run(CREDENTIALS, WatermarkCursor(timestamp=T))

    @pytest.mark.unit
    def test_rejects_offset_cursor(self) -> None:
        with pytest.raises(TypeError):
            GodexConnector().run(CREDENTIALS, OffsetCursor(offset=0))
