"""Main CLI application for SwapBin.

This module provides the unified entry point for all SwapBin CLI operations,
organizing commands into groups for syncing, cursor management and loading.
"""

import logging
import re
from typing import Annotated

import typer

from ..config import get_settings, set_current_profile
from ..logging import LoggingConfig, setup_logging
from .commands import cursor, load, sync

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="swapbin",
    help="SwapBin: exchange partner transaction ingestion",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    profile: Annotated[
        str,
        typer.Option(
            "--profile",
            "-p",
            help="Profile to use (selects .env.{profile}). Default: default",
            envvar="SWAPBIN_PROFILE",
        ),
    ] = "default",
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose debug logging",
        ),
    ] = False,
) -> None:
    """Global options for SwapBin CLI.

    Each profile loads its settings and partner API keys from
    .env.{profile} files and keeps its own cursor database.

    Examples:
      swapbin --profile=prod sync all          # Sync every configured partner
      swapbin sync partner godex --force       # Re-sync Godex from the lookback window
      swapbin cursor show                      # Show stored cursors
    """
    setup_logging(cli_mode=True, verbose=verbose)

    if not re.match(r"^[a-zA-Z0-9_-]+$", profile):
        logger.error(
            f"Invalid profile: {profile}. "
            "Must contain only alphanumeric characters, dashes, and underscores"
        )
        raise typer.BadParameter(
            f"Invalid profile name: {profile}. "
            "Use only alphanumeric characters, dashes, and underscores"
        )

    set_current_profile(profile)

    try:
        settings = get_settings()
    except ValueError as e:
        logger.error(f"❌ {e}")
        raise typer.Exit(1) from e

    # Reconfigure from the profile's logging section now that it is known
    setup_logging(
        config=LoggingConfig.from_settings(settings.logging),
        cli_mode=True,
        verbose=verbose,
    )
    logger.debug(f"Using profile: {profile}")


app.add_typer(sync.app, name="sync", help="Sync transactions from exchange partners")
app.add_typer(cursor.app, name="cursor", help="Inspect and reset stored cursors")
app.add_typer(load.app, name="load", help="Load synced data into DuckDB")


def main() -> None:
    """Entry point for the SwapBin CLI application."""
    app()


if __name__ == "__main__":
    main()
