"""Cursor inspection commands for SwapBin CLI."""

import logging

import typer

from swapbin.config import get_database_path
from swapbin.cursor import describe_cursor
from swapbin.logging import setup_logging
from swapbin.partners import PARTNERS
from swapbin.state_store import CursorStateStore

app = typer.Typer(help="Inspect and reset stored partner cursors")
logger = logging.getLogger(__name__)


@app.command("show")
def show_cursors() -> None:
    """Show the stored cursor of every partner that has synced."""
    setup_logging(cli_mode=True)

    try:
        states = CursorStateStore(get_database_path()).list_states()
    except Exception as e:
        logger.error(f"❌ Failed to read cursor state: {e}")
        raise typer.Exit(1) from e

    if not states:
        logger.info("No stored cursors")
        return

    logger.info("📍 Stored cursors")
    for state in states:
        logger.info(
            f"  {state.partner_id}: {describe_cursor(state.cursor)} "
            f"({state.transactions_synced} transactions, "
            f"last sync {state.last_sync_timestamp})"
        )


@app.command("reset")
def reset_cursor(
    partner_id: str = typer.Argument(..., help="Partner whose cursor to forget"),
) -> None:
    """Forget a partner's cursor so the next sync starts from the beginning.

    Args:
        partner_id: Registered partner id
    """
    setup_logging(cli_mode=True)

    if partner_id not in PARTNERS:
        logger.error(
            f"❌ Unknown partner '{partner_id}'. Available: {', '.join(sorted(PARTNERS))}"
        )
        raise typer.Exit(1)

    try:
        removed = CursorStateStore(get_database_path()).reset(partner_id)
    except Exception as e:
        logger.error(f"❌ Failed to reset cursor: {e}")
        raise typer.Exit(1) from e

    if removed:
        logger.info(f"✅ Reset cursor for {partner_id}")
    else:
        logger.info(f"No stored cursor for {partner_id}")
