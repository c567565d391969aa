"""Custom exceptions for SessionGuard."""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced on AuthResult.error_kind."""
    NETWORK = "network"
    SERVICE_REJECTED = "service_rejected"
    TOKEN_RECOVERY_FAILED = "token_recovery_failed"
    STORAGE_WRITE_FAILED = "storage_write_failed"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    CORRUPT = "corrupt"
    INVALID_INPUT = "invalid_input"
    STALE = "stale"
    UNEXPECTED = "unexpected"


class SessionGuardException(Exception):
    """Base exception for all SessionGuard errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NetworkError(SessionGuardException):
    """Raised when a request to the authentication service never completed."""
    kind = ErrorKind.NETWORK


class ServiceRejected(SessionGuardException):
    """Raised when the authentication service answered with success=false."""
    kind = ErrorKind.SERVICE_REJECTED

    def __init__(
        self,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.payload = payload or {}


class TokenRecoveryFailed(SessionGuardException):
    """Raised when the service succeeded but no usable token could be obtained."""
    kind = ErrorKind.TOKEN_RECOVERY_FAILED


class StorageWriteFailed(SessionGuardException):
    """Raised when a written token cannot be read back from storage."""
    kind = ErrorKind.STORAGE_WRITE_FAILED


class StorageUnavailable(SessionGuardException):
    """Raised when local storage feature detection fails."""
    kind = ErrorKind.STORAGE_UNAVAILABLE


class CorruptSession(SessionGuardException):
    """Raised when a user profile is held without a credential."""
    kind = ErrorKind.CORRUPT


class InvalidInput(SessionGuardException):
    """Raised when caller-supplied form data is missing required fields."""
    kind = ErrorKind.INVALID_INPUT


class StaleOperation(SessionGuardException):
    """Raised when logout or a reset happened while an operation was in flight."""
    kind = ErrorKind.STALE


class ConfigurationException(SessionGuardException):
    """Raised when configuration is invalid."""
    pass
