"""Utility modules for the recorded-event processing service.

Provides:
- Structured logging configuration
"""

from .logging import LogContext, configure_logging, log_operation

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "log_operation",
]
