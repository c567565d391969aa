from .auth import (
    AuthResult,
    ConsistencyState,
    LoginCredentials,
    RegistrationData,
    ServiceResponse,
    Session,
    SessionEvent,
    SessionStatus,
    TokenDiagnostics,
    UserProfile,
    VerificationFailurePolicy,
    looks_like_jwt,
)
from .interfaces import IAuthServiceClient, IKeyValueStorage

__all__ = [
    "AuthResult",
    "ConsistencyState",
    "IAuthServiceClient",
    "IKeyValueStorage",
    "LoginCredentials",
    "RegistrationData",
    "ServiceResponse",
    "Session",
    "SessionEvent",
    "SessionStatus",
    "TokenDiagnostics",
    "UserProfile",
    "VerificationFailurePolicy",
    "looks_like_jwt",
]
