"""
Structured Logging

DESIGN DECISION: Every write and every failure in the ledger core is logged
as a structured event (snake_case event name + key/value context).

The core never prints. It also never logs and then swallows: logging an
error is always followed by re-raising it to the caller.

Only structlog is configured here. The stdlib root logger belongs to the
host application; it is touched only when `LEDGER_LOG_CONFIGURE_ROOT` is
set, and even then existing handlers are left in place.
"""

import logging
import sys
from typing import Optional

import structlog

from expense_ledger.config import LoggingSettings


_configured = False


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """
    Configure structlog to render through the stdlib logging module.

    Safe to call more than once; later calls reapply the configuration
    (useful when settings are reloaded).
    """
    global _configured

    settings = settings or LoggingSettings()

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def configure_root_logging(settings: Optional[LoggingSettings] = None) -> bool:
    """
    Give the root logger a stdout handler for standalone use.

    No-op unless `settings.configure_root` is true, and no-op when the root
    logger already has handlers.

    Returns:
        True if a handler was installed
    """
    settings = settings or LoggingSettings()
    if not settings.configure_root:
        return False

    root = logging.getLogger()
    if root.handlers:
        return False

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.level),
    )
    return True


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger, configuring structlog with defaults on first use."""
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)
