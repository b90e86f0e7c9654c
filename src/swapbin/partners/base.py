"""Partner connector contract and the shared pagination engine.

Every partner connector walks a ``limit``/``offset`` paginated endpoint that
returns a JSON array of raw records. The engine here drives that walk:

1. fetch one page (any :class:`~swapbin.http.FetchFailure` stops the run and
   keeps what was accumulated),
2. validate each record in two phases (a loose probe that never raises, then
   a strict parse that raises :class:`SchemaViolation` on a contract break),
3. map finalized records to :class:`~swapbin.schemas.CanonicalTransaction`,
4. stop when a page comes back short or, for watermark cursors, when a page
   reaches transactions older than the resumed watermark,
5. compute the cursor for the next run.

Watermark cursors only emit records strictly newer than the watermark, and the
watermark moves to the newest emitted record however the walk ended. Two
consequences follow. A record created in the same second as the watermark but
finalized after the run that set it is never emitted. After an interrupted
walk, finalized records older than the last fetched page but newer than the
resumed watermark are not revisited.
"""

import abc
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

import requests
from pydantic import BaseModel, ValidationError

from ..config import SyncConfig
from ..cursor import Cursor, OffsetCursor, WatermarkCursor, describe_cursor
from ..http import FetchFailure, PageFetcher, session_fetcher
from ..schemas import CanonicalTransaction

logger = logging.getLogger(__name__)


class SchemaViolation(ValueError):
    """A record that looks finalized does not match the partner's contract.

    This means the upstream API changed shape, so the run is aborted instead
    of silently returning partial data.
    """

    def __init__(self, partner_id: str, error: ValidationError):
        """Wrap the strict-model validation error for ``partner_id``."""
        super().__init__(
            f"{partner_id} record failed strict validation: "
            f"{error.error_count()} error(s): {error}"
        )
        self.partner_id = partner_id
        self.error = error


class SyncState(Enum):
    """States of the pagination loop."""

    FETCHING = "fetching"
    STOPPED_EXHAUSTED = "stopped_exhausted"
    STOPPED_CAUGHT_UP = "stopped_caught_up"
    STOPPED_FETCH_FAILED = "stopped_fetch_failed"
    STOPPED_PAGE_LIMIT = "stopped_page_limit"

    @property
    def completed(self) -> bool:
        """Whether the loop reached a natural stopping condition."""
        return self in (SyncState.STOPPED_EXHAUSTED, SyncState.STOPPED_CAUGHT_UP)


@dataclass
class PartnerSyncResult:
    """What a connector run hands back to its caller."""

    cursor: Cursor
    transactions: list[CanonicalTransaction] = field(default_factory=list)


@dataclass
class SyncOutcome:
    """Detailed result of one pagination walk."""

    state: SyncState
    cursor: Cursor
    transactions: list[CanonicalTransaction]
    pages_fetched: int
    final_offset: int

    def to_result(self) -> PartnerSyncResult:
        """Drop the loop bookkeeping, keeping the caller-facing result."""
        return PartnerSyncResult(cursor=self.cursor, transactions=self.transactions)


class PartnerConnector(abc.ABC):
    """Base class for exchange partner connectors.

    Subclasses describe their endpoint and schemas; the pagination, stopping
    and cursor logic is shared through :class:`PaginationEngine`.
    """

    partner_id: ClassVar[str]
    plugin_name: ClassVar[str]
    required_credentials: ClassVar[tuple[str, ...]] = ("api_key",)
    cursor_type: ClassVar[type[OffsetCursor] | type[WatermarkCursor]]
    probe_model: ClassVar[type[BaseModel]]
    strict_model: ClassVar[type[BaseModel]]

    def __init__(
        self,
        config: SyncConfig | None = None,
        fetcher: PageFetcher | None = None,
    ):
        """Create a connector.

        Args:
            config: Engine settings (page size, rollback, lookback, bounds)
            fetcher: Page fetcher override; by default each run opens its
                own ``requests.Session``
        """
        self.config = config or SyncConfig()
        self._fetcher = fetcher

    @abc.abstractmethod
    def initial_cursor(self) -> Cursor:
        """Cursor used when no state has been persisted yet."""

    @abc.abstractmethod
    def page_url(self, credentials: Mapping[str, str], offset: int) -> str:
        """Build the URL of the page starting at ``offset``."""

    def page_headers(self, credentials: Mapping[str, str]) -> dict[str, str]:
        """Extra headers sent with every page request."""
        return {}

    @abc.abstractmethod
    def is_final(self, probe: Any) -> bool:
        """Finality predicate evaluated on the loose probe model."""

    @abc.abstractmethod
    def map_record(self, record: Any, raw: dict[str, Any]) -> CanonicalTransaction:
        """Map a strictly validated record to the canonical shape."""

    def validate_record(self, raw: Any) -> BaseModel | None:
        """Two-phase validation of one raw record.

        Returns:
            The strict model when the record is finalized, otherwise None

        Raises:
            SchemaViolation: If a finalized-looking record fails the strict schema
        """
        try:
            probe = self.probe_model.model_validate(raw)
        except ValidationError:
            logger.debug(f"Skipping unrecognizable {self.partner_id} record")
            return None

        if not self.is_final(probe):
            return None

        try:
            return self.strict_model.model_validate(raw)
        except ValidationError as e:
            raise SchemaViolation(self.partner_id, e) from e

    def missing_credentials(self, credentials: Mapping[str, str]) -> list[str]:
        """Return the required credential keys that are absent or empty."""
        return [
            key
            for key in self.required_credentials
            if not isinstance(credentials.get(key), str) or not credentials.get(key)
        ]

    def run(
        self, credentials: Mapping[str, str], cursor: Cursor | None = None
    ) -> PartnerSyncResult:
        """Sync finalized transactions newer than ``cursor``.

        Args:
            credentials: Partner credentials (see ``required_credentials``)
            cursor: Cursor returned by the previous run, None on the first run

        Returns:
            PartnerSyncResult: Normalized transactions and the next cursor.
            An unconfigured partner yields the input cursor and no transactions.

        Raises:
            SchemaViolation: If the partner's record contract changed
            TypeError: If the cursor kind does not match this partner
        """
        if cursor is None:
            cursor = self.initial_cursor()
        if not isinstance(cursor, self.cursor_type):
            raise TypeError(
                f"{self.plugin_name} expects a {self.cursor_type.__name__}, "
                f"got {type(cursor).__name__}"
            )

        missing = self.missing_credentials(credentials)
        if missing:
            logger.info(
                f"{self.plugin_name} not configured (missing {', '.join(missing)}), skipping"
            )
            return PartnerSyncResult(cursor=cursor, transactions=[])

        return self.sync(credentials, cursor).to_result()

    def sync(self, credentials: Mapping[str, str], cursor: Cursor) -> SyncOutcome:
        """Run the pagination engine and return its detailed outcome."""
        if self._fetcher is not None:
            return PaginationEngine(self, credentials, cursor, self._fetcher).run()

        with requests.Session() as session:
            fetcher = session_fetcher(session, self.config.request_timeout)
            return PaginationEngine(self, credentials, cursor, fetcher).run()


class PaginationEngine:
    """Drives one connector's paginated walk for a single run.

    The engine owns the accumulator and the in-memory cursor for the run; it
    never reads or writes persistent state.
    """

    def __init__(
        self,
        connector: PartnerConnector,
        credentials: Mapping[str, str],
        cursor: Cursor,
        fetcher: PageFetcher,
    ):
        """Prepare a run of ``connector`` starting from ``cursor``."""
        self.connector = connector
        self.credentials = credentials
        self.cursor = cursor
        self.fetcher = fetcher
        self.config = connector.config

        self.state = SyncState.FETCHING
        self.pages_fetched = 0
        self.transactions: list[CanonicalTransaction] = []
        self.newest_timestamp: float | None = None

        # Watermark endpoints are walked newest first from the top
        self.offset = 0
        self.watermark: float | None = None
        match cursor:
            case OffsetCursor(offset=offset):
                self.offset = offset
            case WatermarkCursor(timestamp=timestamp):
                self.watermark = timestamp

    def run(self) -> SyncOutcome:
        """Fetch pages until a stopping condition is reached."""
        name = self.connector.plugin_name
        logger.info(f"Starting {name} sync from {describe_cursor(self.cursor)}")

        headers = self.connector.page_headers(self.credentials)
        page_size = self.config.page_size

        while self.state is SyncState.FETCHING:
            if (
                self.config.max_pages is not None
                and self.pages_fetched >= self.config.max_pages
            ):
                logger.warning(
                    f"{name} sync hit the {self.config.max_pages} page limit, stopping"
                )
                self.state = SyncState.STOPPED_PAGE_LIMIT
                break

            url = self.connector.page_url(self.credentials, self.offset)
            try:
                records = self.fetcher(url, headers)
            except FetchFailure as e:
                logger.warning(
                    f"{name} fetch failed at offset {self.offset}: {e}; "
                    f"keeping {len(self.transactions)} transactions"
                )
                self.state = SyncState.STOPPED_FETCH_FAILED
                break

            self.pages_fetched += 1
            caught_up = self._process_page(records)
            self.offset += page_size

            if len(records) < page_size:
                self.state = SyncState.STOPPED_EXHAUSTED
            elif caught_up:
                self.state = SyncState.STOPPED_CAUGHT_UP

        next_cursor = self._next_cursor()
        logger.info(
            f"{name} sync {self.state.value}: {len(self.transactions)} transactions "
            f"over {self.pages_fetched} page(s), next cursor {describe_cursor(next_cursor)}"
        )
        return SyncOutcome(
            state=self.state,
            cursor=next_cursor,
            transactions=self.transactions,
            pages_fetched=self.pages_fetched,
            final_offset=self.offset,
        )

    def _process_page(self, records: list[Any]) -> bool:
        """Validate, map and accumulate one page.

        Returns:
            bool: True when the page reached transactions older than the
            resumed watermark. The whole page is processed either way.
        """
        caught_up = False
        for raw in records:
            record = self.connector.validate_record(raw)
            if record is None:
                continue

            transaction = self.connector.map_record(record, raw)

            if self.watermark is not None:
                if transaction.timestamp < self.watermark:
                    caught_up = True
                if transaction.timestamp <= self.watermark:
                    # Emitted by an earlier run
                    continue
                if (
                    self.newest_timestamp is None
                    or transaction.timestamp > self.newest_timestamp
                ):
                    self.newest_timestamp = transaction.timestamp

            self.transactions.append(transaction)

        return caught_up

    def _next_cursor(self) -> Cursor:
        completed = self.state.completed

        match self.cursor:
            case OffsetCursor(offset=start):
                rolled = OffsetCursor(offset=self.offset).rolled_back(
                    self.config.offset_rollback
                )
                if completed:
                    return rolled
                # An interrupted walk never moves behind where it resumed
                return OffsetCursor(offset=max(start, rolled.offset))
            case WatermarkCursor(timestamp=start):
                # Anything emitted moves the watermark, even on an interrupted
                # walk, so the next run never hands it back again
                if self.newest_timestamp is None:
                    return self.cursor
                return WatermarkCursor(timestamp=max(start, self.newest_timestamp))

        raise TypeError(f"Unsupported cursor: {self.cursor!r}")
