# Utils Package

from .async_helpers import run_async
from .structured_logger import (
    LogContext,
    log_context,
    setup_logging,
    init_sentry,
    report_exception,
)

__all__ = [
    # Async
    "run_async",
    # Logging
    "LogContext",
    "log_context",
    "setup_logging",
    "init_sentry",
    "report_exception",
]
