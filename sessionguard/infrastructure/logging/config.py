"""
SessionGuard Logging Configuration

Provides logging configuration using structlog with JSON or console
rendering and operation context injection.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

import structlog


# Operation-scoped context set by the session manager
operation_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar("operation_context", default=None)


class SessionGuardLogger:
    """
    Logger configuration with structured output.

    This class configures structlog with processors for level filtering,
    timestamps, exception formatting and operation context injection. It
    ensures consistent log structure across all components.
    """

    def __init__(self, level: str = "INFO", fmt: str = "json"):
        """Initialize the logger configuration."""
        self.level = level
        self.fmt = fmt
        self.configure_structlog()

    def configure_structlog(self) -> None:
        """
        Configure structlog with the processor chain.

        Sets up a processor chain that handles:
        - Log level filtering
        - Logger name and level addition
        - Timestamp formatting
        - Exception information
        - Operation context injection
        - JSON or console rendering
        """
        logging.basicConfig(
            format="%(message)s",
            level=getattr(logging, self.level, logging.INFO),
        )
        logging.getLogger("sessionguard").setLevel(getattr(logging, self.level, logging.INFO))
        logging.getLogger("httpx").setLevel(logging.WARNING)

        renderer = (
            structlog.dev.ConsoleRenderer()
            if self.fmt == "console"
            else structlog.processors.JSONRenderer()
        )

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                self.add_operation_context,
                renderer,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )

    @staticmethod
    def add_operation_context(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Add the current session operation without overriding explicit fields.

        Args:
            logger: Logger instance
            method_name: Log method name
            event_dict: Event dictionary to process

        Returns:
            Event dictionary with operation name and session epoch
        """
        ctx = operation_context.get()
        if ctx:
            for key, value in ctx.items():
                event_dict.setdefault(key, value)
        return event_dict


@contextmanager
def bind_operation(operation: str, **fields: Any) -> Iterator[Dict[str, Any]]:
    """Set operation context for every log line emitted inside the block."""
    ctx = {"operation": operation, **fields}
    token = operation_context.set(ctx)
    try:
        yield ctx
    finally:
        operation_context.reset(token)


# Singleton configuration instance
_logger_config: Optional[SessionGuardLogger] = None


def configure_logging(level: str = "INFO", fmt: str = "json") -> SessionGuardLogger:
    """(Re)configure logging explicitly, e.g. from settings."""
    global _logger_config
    _logger_config = SessionGuardLogger(level=level, fmt=fmt)
    return _logger_config


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Uses a singleton configuration so structlog is configured once.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Token persisted", token_length=143)
    """
    global _logger_config
    if _logger_config is None:
        _logger_config = SessionGuardLogger()

    return structlog.get_logger(name)
