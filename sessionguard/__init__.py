"""
SessionGuard: client-side session and authentication state for a site
backed by a remote REST authentication service.

Construct one SessionManager per browser context (or process) and pass it
to whatever renders the session:

    manager = SessionManager.from_settings()
    await manager.initialize()
    result = await manager.login({"email": "a@b.com", "password": "x"})
"""

from .exceptions import (
    ConfigurationException,
    CorruptSession,
    ErrorKind,
    InvalidInput,
    NetworkError,
    ServiceRejected,
    SessionGuardException,
    StaleOperation,
    StorageUnavailable,
    StorageWriteFailed,
    TokenRecoveryFailed,
)
from .models.auth import (
    AuthResult,
    ConsistencyState,
    Session,
    SessionEvent,
    SessionStatus,
    UserProfile,
    VerificationFailurePolicy,
)
from .session_management import SessionManager

__version__ = "0.1.0"

__all__ = [
    "AuthResult",
    "ConfigurationException",
    "ConsistencyState",
    "CorruptSession",
    "ErrorKind",
    "InvalidInput",
    "NetworkError",
    "ServiceRejected",
    "Session",
    "SessionEvent",
    "SessionGuardException",
    "SessionManager",
    "SessionStatus",
    "StaleOperation",
    "StorageUnavailable",
    "StorageWriteFailed",
    "TokenRecoveryFailed",
    "UserProfile",
    "VerificationFailurePolicy",
]
