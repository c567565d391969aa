"""Authentication Data Models

Purpose: Define data structures for the client-side session

This module provides the data models shared by the credential store, the
consistency guard, the token acquisition strategy and the session manager.
Wire-facing records (profiles, service answers, operation results) are
Pydantic models; purely local reports are dataclasses.

Key Components:
- UserProfile: Cached copy of the server's view of the signed-in user
- Session: In-memory session state exposed to the presentation layer
- AuthResult: Outcome of every remote-facing session operation
- ServiceResponse: Parsed answer of the authentication service
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from sessionguard.exceptions import ErrorKind, SessionGuardException


# Python field name -> name used by the authentication service
_WIRE_NAMES = {
    "email_verified": "emailVerified",
    "_id": "id",
}


def looks_like_jwt(token: Optional[str]) -> bool:
    """Structural check only: non-empty with exactly two '.' separators."""
    return bool(token) and isinstance(token, str) and token.count(".") == 2


class SessionStatus(str, Enum):
    """Session manager state machine states"""
    IDLE = "idle"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    SESSION_ERROR = "session_error"


class SessionEvent(str, Enum):
    """Notifications published to session subscribers"""
    STATE_CHANGED = "state_changed"
    LOGIN_REQUIRED = "login_required"
    SESSION_RESET = "session_reset"


class ConsistencyState(str, Enum):
    """Outcome of a token/profile consistency check"""
    CONSISTENT = "consistent"
    CREDENTIAL_ONLY = "credential_only"
    CORRUPT = "corrupt"


class VerificationFailurePolicy(str, Enum):
    """What reconciliation does when the profile check fails"""
    KEEP_SESSION = "keep_session"
    FORCE_LOGOUT = "force_logout"


class UserProfile(BaseModel):
    """Server-defined user record, cached locally as a read-through copy.

    Only ``id``, ``email``, ``role`` and ``emailVerified`` are interpreted;
    every other field the service sends is preserved untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    email: Optional[str] = None
    role: Optional[str] = "user"
    email_verified: bool = Field(default=False, alias="emailVerified")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("email_verified", mode="before")
    @classmethod
    def _coerce_verified(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_storage(self) -> Dict[str, Any]:
        """Serialise with the service's field names."""
        return self.model_dump(by_alias=True, mode="json")

    def merged(self, patch: Mapping[str, Any]) -> "UserProfile":
        """Shallow merge, later keys win. Accepts wire or Python field names."""
        data = self.to_storage()
        for key, value in patch.items():
            data[_WIRE_NAMES.get(key, key)] = value
        return UserProfile.model_validate(data)


class LoginCredentials(BaseModel):
    email: str
    password: str


class RegistrationData(BaseModel):
    email: str
    password: str
    username: str
    name: Optional[str] = None
    lastname: Optional[str] = None


class Session(BaseModel):
    """In-memory session state.

    Attributes:
        user: Signed-in profile, None when signed out
        loading: True while an operation is in flight
        error: Last operation's error message
        session_error: Blocking condition (storage unavailable) the UI must surface
        status: Current state machine state
    """

    user: Optional[UserProfile] = None
    loading: bool = False
    error: Optional[str] = None
    session_error: bool = False
    status: SessionStatus = SessionStatus.IDLE

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class ServiceResponse(BaseModel):
    """Parsed answer of the authentication service.

    ``headers`` keys are lower-cased. ``raw`` holds the JSON body exactly as
    received (empty when the body was not JSON).
    """

    success: bool = False
    message: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    status_code: int = 200
    headers: Dict[str, str] = Field(default_factory=dict)
    raw: Dict[str, Any] = Field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def user_payload(self) -> Optional[Dict[str, Any]]:
        """Extract the user record from either accepted profile shape.

        ``{data: {user: {...}}}``, ``{user: {...}}`` or ``{data: {...user fields}}``.
        """
        user = self.data.get("user")
        if isinstance(user, dict):
            return user
        user = self.raw.get("user")
        if isinstance(user, dict):
            return user
        if "id" in self.data or "_id" in self.data:
            return self.data
        return None


class AuthResult(BaseModel):
    """Outcome of a session operation."""

    success: bool
    message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, message: Optional[str] = None, payload: Optional[Dict[str, Any]] = None) -> "AuthResult":
        return cls(success=True, message=message, payload=payload or {})

    @classmethod
    def from_exception(cls, error: SessionGuardException) -> "AuthResult":
        payload = getattr(error, "payload", None) or {}
        return cls(success=False, message=error.message, error_kind=error.kind, payload=payload)

    @classmethod
    def from_response(cls, response: ServiceResponse) -> "AuthResult":
        """Pass the service's own verdict through unchanged."""
        return cls(
            success=response.success,
            message=response.message,
            error_kind=None if response.success else ErrorKind.SERVICE_REJECTED,
            payload=response.raw,
        )


@dataclass
class TokenDiagnostics:
    """Cross-check of the primary token against its diagnostic copies

    Attributes:
        token_present: A primary token is stored
        token_length: Length of the primary token
        looks_like_jwt: Primary token passes the structural check
        backups_match: Every backup copy equals the primary token
        recorded_length: Length recorded when the token was written
        length_matches: Recorded length equals the primary token's length
    """
    token_present: bool
    token_length: int = 0
    looks_like_jwt: bool = False
    backups_match: bool = True
    recorded_length: Optional[int] = None
    length_matches: bool = True

    @property
    def is_consistent(self) -> bool:
        return self.backups_match and self.length_matches
