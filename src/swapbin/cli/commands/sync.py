"""Partner synchronization commands for SwapBin CLI.

This module provides commands that pull finalized transactions from exchange
partner APIs, resuming from each partner's stored cursor.
"""

import logging

import typer

from swapbin.config import get_current_profile
from swapbin.logging import setup_logging
from swapbin.partners import PARTNERS
from swapbin.runner import PartnerRunReport, PartnerSyncManager

app = typer.Typer(help="Sync transactions from exchange partners")
logger = logging.getLogger(__name__)


def _report(reports: dict[str, PartnerRunReport]) -> None:
    """Log a per-partner summary and exit non-zero if any partner failed."""
    failed = [report for report in reports.values() if not report.succeeded]

    logger.info("📊 Sync Results:")
    for partner_id, report in reports.items():
        if report.succeeded:
            logger.info(f"  {partner_id}: {len(report.transactions):,} transactions")
        else:
            logger.info(f"  {partner_id}: failed ({report.error})")

    if failed:
        raise typer.Exit(1)


@app.command("partner")
def sync_partner(
    partner_id: str = typer.Argument(
        ..., help=f"Partner to sync ({', '.join(sorted(PARTNERS))})"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Ignore the stored cursor and sync from the initial cursor",
    ),
) -> None:
    """Sync finalized transactions from a single partner.

    By default the sync resumes from the partner's stored cursor. Use --force
    to start from the initial cursor (offset 0, or the lookback window).

    Args:
        partner_id: Registered partner id
        verbose: Enable debug level logging
        force: Ignore the stored cursor
    """
    setup_logging(cli_mode=True, verbose=verbose)

    if partner_id not in PARTNERS:
        logger.error(
            f"❌ Unknown partner '{partner_id}'. Available: {', '.join(sorted(PARTNERS))}"
        )
        raise typer.Exit(1)

    logger.info(f"Starting {partner_id} sync (Profile: {get_current_profile()})")

    try:
        manager = PartnerSyncManager()
        report = manager.sync_partner(partner_id, force_full_sync=force)
    except Exception as e:
        logger.error(f"❌ Sync failed: {e}")
        raise typer.Exit(1) from e

    _report({partner_id: report})


@app.command("all")
def sync_all(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Ignore stored cursors and sync from the initial cursors",
    ),
) -> None:
    """Sync finalized transactions from every registered partner.

    Partners without credentials are skipped without error.

    Args:
        verbose: Enable debug level logging
        force: Ignore stored cursors
    """
    setup_logging(cli_mode=True, verbose=verbose)

    logger.info(f"Starting partner sync (Profile: {get_current_profile()})")

    try:
        manager = PartnerSyncManager()
        reports = manager.sync_all(force_full_sync=force)
    except Exception as e:
        logger.error(f"❌ Sync failed: {e}")
        raise typer.Exit(1) from e

    _report(reports)
