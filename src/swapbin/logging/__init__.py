"""Centralized logging configuration for SwapBin.

Standard usage:
    ```python
    import logging
    from swapbin.logging import setup_logging

    # Configure once at application startup
    setup_logging()

    # Get loggers in each module
    logger = logging.getLogger(__name__)
    ```
"""

from .config import LoggingConfig, get_log_config_summary, setup_logging

__all__ = ["LoggingConfig", "get_log_config_summary", "setup_logging"]
