"""Logging configuration management for SwapBin.

This module provides centralized logging configuration used by the CLI,
the sync runner and the partner connectors.
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import LoggingConfig as LoggingSettings


@dataclass
class LoggingConfig:
    """Configuration settings for application logging."""

    level: str = "INFO"
    format_string: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    cli_format_string: str = "%(message)s"
    log_to_file: bool = False
    log_file_path: Path = Path("logs/swapbin.log")
    max_file_size_mb: int = 50
    backup_count: int = 5
    force_reconfigure: bool = False

    @classmethod
    def from_environment(cls) -> "LoggingConfig":
        """Create logging configuration from environment variables.

        Returns:
            LoggingConfig: Configuration loaded from environment
        """
        return cls(
            level=os.getenv("SWAPBIN_LOGGING__LEVEL", "INFO").upper(),
            log_to_file=os.getenv("SWAPBIN_LOGGING__LOG_TO_FILE", "false").lower()
            == "true",
            log_file_path=Path(
                os.getenv("SWAPBIN_LOGGING__LOG_FILE_PATH", "logs/swapbin.log")
            ),
            max_file_size_mb=int(
                os.getenv("SWAPBIN_LOGGING__MAX_FILE_SIZE_MB", "50")
            ),
            backup_count=int(os.getenv("SWAPBIN_LOGGING__BACKUP_COUNT", "5")),
        )

    @classmethod
    def from_settings(cls, settings: LoggingSettings) -> "LoggingConfig":
        """Create logging configuration from a profile's ``logging`` section.

        Handlers are replaced, since logging may already be configured from
        the environment before the profile is known.
        """
        return cls(
            level=settings.level,
            log_to_file=settings.log_to_file,
            log_file_path=settings.log_file_path,
            max_file_size_mb=settings.max_file_size_mb,
            backup_count=settings.backup_count,
            force_reconfigure=True,
        )


def setup_logging(
    config: LoggingConfig | None = None,
    cli_mode: bool = False,
    verbose: bool = False,
) -> None:
    """Set up centralized logging configuration for the application.

    Args:
        config: Optional logging configuration. If None, loads from environment.
        cli_mode: If True, use simplified CLI-friendly formatting
        verbose: If True, enable DEBUG level logging (overrides config level)
    """
    if config is None:
        config = LoggingConfig.from_environment()

    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, config.level)

    handlers: list[logging.Handler] = []

    # Console output goes to stderr so piped stdout stays clean
    console_handler = logging.StreamHandler(sys.stderr)
    if cli_mode:
        console_handler.setFormatter(logging.Formatter(config.cli_format_string))
    else:
        console_handler.setFormatter(logging.Formatter(config.format_string))
    handlers.append(console_handler)

    if config.log_to_file:
        config.log_file_path.parent.mkdir(parents=True, exist_ok=True)

        from logging.handlers import RotatingFileHandler

        file_handler = RotatingFileHandler(
            config.log_file_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(logging.Formatter(config.format_string))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=config.force_reconfigure,
    )

    # Quiet the HTTP stack; page fetches are logged by the sync engine
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def get_log_config_summary() -> dict[str, Any]:
    """Get a summary of current logging configuration.

    Returns:
        dict: Summary of logging configuration settings
    """
    config = LoggingConfig.from_environment()
    root_logger = logging.getLogger()

    return {
        "level": logging.getLevelName(root_logger.level),
        "handlers": [type(h).__name__ for h in root_logger.handlers],
        "log_to_file": config.log_to_file,
        "log_file_path": str(config.log_file_path),
        "format_string": config.format_string,
    }
