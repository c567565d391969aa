"""
SessionGuard Logging Infrastructure

Structlog configuration plus an operation context that tags every log line
emitted during a session operation with the operation name and the session
epoch it started in.
"""

from .config import SessionGuardLogger, bind_operation, configure_logging, get_logger, operation_context

__all__ = [
    "SessionGuardLogger",
    "bind_operation",
    "configure_logging",
    "get_logger",
    "operation_context",
]
