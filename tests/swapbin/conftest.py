"""Shared pytest fixtures for swapbin tests.

This module provides the fixtures used across the suite: settings cache and
profile isolation, a scripted page fetcher and raw partner record factories.
"""

from collections.abc import Callable, Generator, Mapping
from pathlib import Path
from typing import Any

import pytest

from swapbin.config import clear_settings_cache, set_current_profile


class ScriptedFetcher:
    """Page fetcher that replays a fixed list of pages.

    Each item is either a list of raw records or an exception to raise. Once
    the script runs out an empty page is returned.
    """

    def __init__(self, pages: list[Any]):
        self.pages = list(pages)
        self.calls: list[tuple[str, dict[str, str]]] = []

    def __call__(self, url: str, headers: Mapping[str, str]) -> list[Any]:
        self.calls.append((url, dict(headers)))
        if not self.pages:
            return []
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page

    @property
    def urls(self) -> list[str]:
        return [url for url, _headers in self.calls]


@pytest.fixture(autouse=True)
def clean_profile_state(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Isolate every test from cached settings, env files and the cwd.

    Settings create their data directories relative to the working
    directory, so each test runs inside its own temporary directory.
    """
    monkeypatch.chdir(tmp_path)
    for var in (
        "SWAPBIN_PARTNERS__CHANGENOW__API_KEY",
        "SWAPBIN_PARTNERS__GODEX__API_KEY",
        "SWAPBIN_PROFILE",
    ):
        monkeypatch.delenv(var, raising=False)

    clear_settings_cache()
    set_current_profile("test")

    yield

    clear_settings_cache()
    set_current_profile("test")


@pytest.fixture
def make_fetcher() -> Callable[[list[Any]], ScriptedFetcher]:
    """Factory for scripted page fetchers."""
    return ScriptedFetcher


@pytest.fixture
def changenow_record() -> Callable[..., dict[str, Any]]:
    """Factory for raw ChangeNOW records; finished by default."""

    def build(index: int = 0, **overrides: Any) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": f"cn_{index}",
            "status": "finished",
            "updatedAt": "2024-03-01T12:00:00.250Z",
            "payinHash": f"payin_{index}",
            "payoutHash": f"payout_{index}",
            "payinAddress": "bc1qdepositaddress",
            "fromCurrency": "btc",
            "amountSend": 0.015,
            "payoutAddress": "0xpayoutaddress",
            "toCurrency": "eth",
            "amountReceive": 0.42,
        }
        record.update(overrides)
        return record

    return build


@pytest.fixture
def godex_record() -> Callable[..., dict[str, Any]]:
    """Factory for raw Godex records; successful by default."""

    def build(timestamp: int, index: int = 0, **overrides: Any) -> dict[str, Any]:
        record: dict[str, Any] = {
            "transaction_id": f"gx_{index}",
            "status": "success",
            "hash_in": f"hash_in_{index}",
            "deposit": "LdepositAddress",
            "coin_from": "ltc",
            "deposit_amount": "1.50000000",
            "withdrawal": "TwithdrawalAddress",
            "coin_to": "usdt",
            "withdrawal_amount": "98.12",
            "created_at": str(timestamp),
        }
        record.update(overrides)
        return record

    return build
