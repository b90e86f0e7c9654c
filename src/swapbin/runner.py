"""Sync runner coordinating partner connectors with persisted state.

The runner plays the scheduler role around the connectors: it loads each
partner's cursor from the DuckDB state store, hands the connector its
credentials and cursor, writes the returned transactions to Parquet and
persists the returned cursor. Partners run one after another and
independently of each other.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .config import SwapBinSettings, get_settings
from .cursor import Cursor, describe_cursor
from .http import PageFetcher
from .partners import PARTNERS, SchemaViolation, get_connector_class
from .schemas import CanonicalTransaction
from .state_store import CursorStateStore
from .storage import write_transactions

logger = logging.getLogger(__name__)


@dataclass
class PartnerRunReport:
    """Outcome of syncing one partner."""

    partner_id: str
    transactions: list[CanonicalTransaction] = field(default_factory=list)
    cursor: Cursor | None = None
    output_path: Path | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """Whether the partner synced without a contract violation."""
        return self.error is None


class PartnerSyncManager:
    """Runs partner connectors and persists their cursors."""

    def __init__(
        self,
        settings: SwapBinSettings | None = None,
        state_store: CursorStateStore | None = None,
        fetcher: PageFetcher | None = None,
    ):
        """Initialize the manager.

        Args:
            settings: Application settings, defaults to the current profile's
            state_store: Cursor store, defaults to the configured database
            fetcher: Page fetcher override passed to every connector
        """
        self.settings = settings or get_settings()
        self.state_store = state_store or CursorStateStore(
            self.settings.database.path,
            create_database_dir=self.settings.database.create_dirs,
        )
        self._fetcher = fetcher

    def sync_partner(
        self, partner_id: str, force_full_sync: bool = False
    ) -> PartnerRunReport:
        """Sync one partner and persist its next cursor.

        A contract violation is logged and reported; the stored cursor is left
        untouched so the next run retries from the same place.

        Args:
            partner_id: Registered partner id (e.g. "changenow")
            force_full_sync: Ignore the stored cursor and start fresh

        Raises:
            KeyError: If ``partner_id`` is not a registered partner
        """
        connector_cls = get_connector_class(partner_id)
        connector = connector_cls(config=self.settings.sync, fetcher=self._fetcher)
        credentials = self.settings.partners.credentials_for(partner_id)

        cursor = None if force_full_sync else self.state_store.load(partner_id)
        if cursor is None:
            logger.info(f"No stored cursor for {partner_id}, starting fresh")
        else:
            logger.info(f"Resuming {partner_id} from {describe_cursor(cursor)}")

        try:
            result = connector.run(credentials, cursor)
        except SchemaViolation as e:
            logger.error(f"❌ {connector.plugin_name} contract violation: {e}")
            return PartnerRunReport(partner_id=partner_id, cursor=cursor, error=str(e))

        output_path = None
        if self.settings.data.save_raw_data:
            output_path = write_transactions(
                partner_id, result.transactions, self.settings.data.raw_data_path
            )

        if connector.missing_credentials(credentials):
            logger.debug(f"Not persisting cursor for unconfigured {partner_id}")
        else:
            self.state_store.save(partner_id, result.cursor, len(result.transactions))

        return PartnerRunReport(
            partner_id=partner_id,
            transactions=result.transactions,
            cursor=result.cursor,
            output_path=output_path,
        )

    def sync_all(
        self,
        partner_ids: list[str] | None = None,
        force_full_sync: bool = False,
    ) -> dict[str, PartnerRunReport]:
        """Sync several partners in turn.

        Args:
            partner_ids: Partners to sync, defaults to every registered partner
            force_full_sync: Ignore stored cursors

        Returns:
            dict: Mapping of partner id to its run report
        """
        partner_ids = partner_ids or list(PARTNERS)
        logger.info(f"Syncing {len(partner_ids)} partners")

        reports: dict[str, PartnerRunReport] = {}
        for partner_id in partner_ids:
            logger.info(f"Syncing {partner_id}")
            report = self.sync_partner(partner_id, force_full_sync=force_full_sync)
            if report.succeeded:
                logger.info(
                    f"✅ Synced {len(report.transactions)} transactions from {partner_id}"
                )
            reports[partner_id] = report

        return reports
