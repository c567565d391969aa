"""
SessionGuard Base Infrastructure Client

Provides a base class for external service clients with structured
logging, call metrics and optional retries.
"""

import asyncio
import time
from abc import ABC
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Tuple, Type, TypeVar

from sessionguard.infrastructure.logging import get_logger


T = TypeVar('T')


class BaseExternalClient(ABC):
    """
    Base class for external service clients in the infrastructure layer.

    Wraps every outbound call with timing, success/failure counters and
    structured log events. Errors are logged and re-raised unchanged so the
    concrete client decides how to translate them.

    Attributes:
        client_name: Name of the external client
        service_name: Name of the external service being accessed
        logger: structlog logger bound to the client
        connection_metrics: Call counters and timestamps
    """

    def __init__(self, client_name: str, service_name: str):
        """
        Initialize base external client.

        Args:
            client_name: Name of the client (e.g., "auth_client")
            service_name: Name of the external service (e.g., "AuthService")
        """
        self.client_name = client_name
        self.service_name = service_name
        self.logger = get_logger(f"sessionguard.infrastructure.{client_name}").bind(
            client=client_name, service=service_name
        )

        self.connection_metrics: Dict[str, Any] = {
            "total_calls": 0,
            "successful_calls": 0,
            "failed_calls": 0,
            "last_success_time": None,
            "last_failure_time": None,
        }

    async def call_external(
        self,
        operation_name: str,
        call_func: Callable[..., Awaitable[T]],
        *args,
        retries: int = 0,
        retry_delay: float = 1.0,
        retry_on: Tuple[Type[BaseException], ...] = (),
        **kwargs
    ) -> T:
        """
        Execute an external service call with logging, metrics and retries.

        Args:
            operation_name: Name of the external operation (e.g., "login")
            call_func: Coroutine function performing the call
            *args: Arguments to pass to the call function
            retries: Number of retry attempts on failure
            retry_delay: Base delay between retries (exponential backoff)
            retry_on: Exception types that are worth retrying; others fail fast
            **kwargs: Keyword arguments to pass to the call function

        Returns:
            Result of the external call

        Raises:
            Whatever call_func raised on the final attempt
        """
        self.connection_metrics["total_calls"] += 1

        for attempt in range(retries + 1):
            start_time = time.monotonic()
            try:
                result = await call_func(*args, **kwargs)
            except Exception as call_error:
                duration = time.monotonic() - start_time
                if attempt < retries and isinstance(call_error, retry_on):
                    self.logger.warning(
                        "External call failed, will retry",
                        operation=operation_name,
                        error=str(call_error),
                        attempt=attempt + 1,
                        remaining_attempts=retries - attempt,
                    )
                    await asyncio.sleep(retry_delay * (2 ** attempt))
                    continue

                self.connection_metrics["failed_calls"] += 1
                self.connection_metrics["last_failure_time"] = datetime.now(timezone.utc).isoformat()
                self.logger.error(
                    "External call failed",
                    operation=operation_name,
                    error=str(call_error),
                    error_type=type(call_error).__name__,
                    duration=round(duration, 4),
                    attempts=attempt + 1,
                )
                raise

            duration = time.monotonic() - start_time
            self.connection_metrics["successful_calls"] += 1
            self.connection_metrics["last_success_time"] = datetime.now(timezone.utc).isoformat()
            self.logger.info(
                "External call completed",
                operation=operation_name,
                duration=round(duration, 4),
                attempts=attempt + 1,
            )
            return result

        raise RuntimeError(f"Unexpected error in external call to {self.service_name}.{operation_name}")

    def get_metrics(self) -> Dict[str, Any]:
        """Return a copy of the call metrics."""
        return {
            "client": self.client_name,
            "service": self.service_name,
            "metrics": self.connection_metrics.copy(),
        }
