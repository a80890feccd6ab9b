"""
Structured logging module.

Provides JSON/console formatting and event context propagation.
"""

from retryflow.core.logging.context import (
    LogContext,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from retryflow.core.logging.formatters import ConsoleFormatter, JSONFormatter
from retryflow.core.logging.setup import setup_logging

__all__ = [
    # Setup
    "setup_logging",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "LogContext",
]
