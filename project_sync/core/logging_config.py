# project_sync/core/logging_config.py
"""
Centralized logging configuration for the sync runner.

Keeps the sync's own loggers at the configured level and quiets the HTTP
client and scheduler libraries, which log every request/job at INFO.
"""

import logging
import os
from typing import Optional


def configure_logging(level: Optional[str] = None):
    """
    Configure logging for the application.

    - project_sync code: LOG_LEVEL (default INFO)
    - HTTP clients (httpx, httpcore): WARNING only
    - APScheduler: WARNING only
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=resolved,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    # Quiet noisy HTTP client loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # Quiet scheduler loggers
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("apscheduler.scheduler").setLevel(logging.WARNING)

    logging.getLogger("project_sync").setLevel(resolved)
    logging.getLogger("__main__").setLevel(resolved)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at level: {log_level}")
