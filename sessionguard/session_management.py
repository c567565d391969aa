"""session_management.py

Purpose: Client-side session and authentication state management

Requirements:
--------------------------------------------------------------------------------
• Own the in-memory Session (user, loading, error, session_error, status)
• Coordinate login / register / logout / email verification with the
  remote authentication service
• Keep in-memory state and the credential store in step, never trusting a
  cached profile that has no credential behind it

Key Components:
--------------------------------------------------------------------------------
  class SessionManager: initialize(), login(), register(), logout(), ...
  Session epochs: logout, repairs and new sign-ins invalidate in-flight operations
  Reconciliation: startup / reconnect validation against GET /auth/profile

Technology Stack:
--------------------------------------------------------------------------------
Pydantic, AsyncIO, httpx (through IAuthServiceClient), structlog
"""

from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .config.settings import SessionGuardSettings, get_settings
from .exceptions import (
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
from .infrastructure.auth_client import AuthServiceClient
from .infrastructure.logging import bind_operation, configure_logging, get_logger
from .infrastructure.persistence.credential_store import CredentialStore
from .infrastructure.persistence.storage_backends import InMemoryStorage, JsonFileStorage
from .models.auth import (
    AuthResult,
    ConsistencyState,
    LoginCredentials,
    RegistrationData,
    ServiceResponse,
    Session,
    SessionEvent,
    SessionStatus,
    UserProfile,
    VerificationFailurePolicy,
)
from .models.interfaces import IAuthServiceClient, IKeyValueStorage
from .session.consistency import ConsistencyGuard
from .session.token_strategy import TokenAcquisitionStrategy


SessionListener = Callable[[Session, SessionEvent], None]

CONNECTION_ERROR_MESSAGE = "Could not connect to the server"


class SessionManager:
    """Session state machine over IAuthServiceClient and CredentialStore.

    States: idle -> loading -> {authenticated, unauthenticated, session_error}.
    ``session_error`` is only left through ``reset_session()``.

    Every operation records the session epoch it started in. ``logout()``,
    ``reset_session()``, consistency repairs and a newly persisted credential
    bump the epoch; an operation
    that finds the epoch changed when its network call returns discards its
    result instead of writing to the session or the credential store.
    """

    def __init__(
        self,
        auth_client: IAuthServiceClient,
        credential_store: CredentialStore,
        on_verification_failure: Union[VerificationFailurePolicy, str] = VerificationFailurePolicy.FORCE_LOGOUT,
        require_jwt_format: bool = False,
        token_strategy: Optional[TokenAcquisitionStrategy] = None,
        consistency_guard: Optional[ConsistencyGuard] = None,
    ):
        self.logger = get_logger(__name__)
        self.auth_client = auth_client
        self.credential_store = credential_store
        self.on_verification_failure = VerificationFailurePolicy(on_verification_failure)
        self.consistency_guard = consistency_guard or ConsistencyGuard(credential_store)
        self.token_strategy = token_strategy or TokenAcquisitionStrategy(
            auth_client, credential_store, require_jwt_format=require_jwt_format
        )

        self._session = Session()
        self._epoch = 0
        self._reconciling = False
        self._listeners: List[SessionListener] = []

        self.logger.info(
            "SessionManager initialized",
            on_verification_failure=self.on_verification_failure.value,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[SessionGuardSettings] = None,
        storage: Optional[IKeyValueStorage] = None,
        auth_client: Optional[IAuthServiceClient] = None,
    ) -> "SessionManager":
        """Build a manager with the configured storage and HTTP client."""
        settings = settings or get_settings()
        configure_logging(settings.log_level.value, settings.log_format)
        if storage is None:
            storage = JsonFileStorage(settings.storage_path) if settings.storage_path else InMemoryStorage()
        return cls(
            auth_client=auth_client or AuthServiceClient.from_settings(settings),
            credential_store=CredentialStore(storage, settings.keys),
            on_verification_failure=settings.on_verification_failure,
            require_jwt_format=settings.require_jwt_format,
        )

    async def aclose(self) -> None:
        close = getattr(self.auth_client, "aclose", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # State access and subscriptions
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        """Snapshot of the current session; mutating it has no effect."""
        return self._session.model_copy(deep=True)

    @property
    def epoch(self) -> int:
        return self._epoch

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: SessionEvent = SessionEvent.STATE_CHANGED) -> None:
        snapshot = self.session
        for listener in list(self._listeners):
            try:
                listener(snapshot, event)
            except Exception:
                self.logger.exception("Session listener failed", session_event=event.value)

    def _update(self, event: SessionEvent = SessionEvent.STATE_CHANGED, **changes: Any) -> None:
        for field, value in changes.items():
            setattr(self._session, field, value)
        self._publish(event)

    def _resting_status(self) -> SessionStatus:
        if self._session.session_error:
            return SessionStatus.SESSION_ERROR
        if self._session.user is not None:
            return SessionStatus.AUTHENTICATED
        return SessionStatus.UNAUTHENTICATED

    def _settle(self) -> None:
        self._update(loading=False, status=self._resting_status())

    def _ensure_current(self, epoch: int) -> None:
        if epoch != self._epoch:
            raise StaleOperation(
                "Session changed while the operation was in flight",
                details={"started_epoch": epoch, "current_epoch": self._epoch},
            )

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------

    def _repair(self, reason: str) -> None:
        self.consistency_guard.repair()
        self._after_repair(reason)

    def _after_repair(self, reason: str) -> None:
        """In-memory half of a repair, once the guard has wiped the store."""
        self.logger.error("Repaired inconsistent session", reason=reason)
        self._epoch += 1
        self._session.user = None
        self._session.status = self._resting_status()
        self._publish(SessionEvent.LOGIN_REQUIRED)

    def _store_user(self, profile: Optional[UserProfile]) -> None:
        """Guard-checked path for every in-memory and persisted user change."""
        if profile is not None and self.credential_store.get_token() is None:
            self._repair("user without credential")
            raise CorruptSession("Session is inconsistent, please sign in again")
        self._session.user = profile
        self.credential_store.set_user(profile)

    def _held_user(self) -> Optional[UserProfile]:
        """The in-memory user, after enforcing that a credential backs it."""
        user = self._session.user
        if user is None:
            return None
        state = self.consistency_guard.check(self.credential_store.get_token() is not None, True)
        if state is ConsistencyState.CORRUPT:
            self._repair("held user lost its credential")
            return None
        return user

    @staticmethod
    def _parse_profile(user_data: Mapping[str, Any]) -> UserProfile:
        try:
            return UserProfile.model_validate(dict(user_data))
        except ValidationError as e:
            raise ServiceRejected(
                "Invalid user profile received",
                details={"error_count": e.error_count()},
            ) from e

    # ------------------------------------------------------------------
    # Operation plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        body: Callable[[int], Awaitable[AuthResult]],
        network_message: str = CONNECTION_ERROR_MESSAGE,
        record_error: bool = True,
    ) -> AuthResult:
        epoch = self._epoch
        with bind_operation(operation, epoch=epoch):
            self._update(loading=True, error=None, status=SessionStatus.LOADING)
            try:
                return await body(epoch)
            except SessionGuardException as e:
                return self._fail(e, epoch, network_message, record_error)
            except Exception as e:
                self.logger.exception("Unexpected error during session operation")
                if record_error:
                    self._session.error = "Unexpected error, please try again"
                return AuthResult(
                    success=False,
                    message="Unexpected error, please try again",
                    error_kind=ErrorKind.UNEXPECTED,
                    payload={"error_type": type(e).__name__},
                )
            finally:
                self._settle()

    def _fail(
        self,
        error: SessionGuardException,
        epoch: int,
        network_message: str,
        record_error: bool,
    ) -> AuthResult:
        if isinstance(error, StaleOperation):
            self.logger.info("Discarding result of superseded operation", details=error.details)
            return AuthResult.from_exception(error)

        if isinstance(error, (TokenRecoveryFailed, StorageWriteFailed)) and epoch == self._epoch:
            # Never leave a half-established session behind
            self.credential_store.clear()
            self._session.user = None

        message = network_message if isinstance(error, NetworkError) else error.message
        self.logger.warning(
            "Session operation failed",
            error_kind=error.kind.value,
            message=message,
            details=error.details,
        )
        if record_error:
            self._session.error = message
        return AuthResult(
            success=False,
            message=message,
            error_kind=error.kind,
            payload=getattr(error, "payload", None) or {},
        )

    async def _establish(self, response: ServiceResponse, epoch: int, rejected_message: str) -> AuthResult:
        """Turn a login/register answer into an authenticated session."""
        self._ensure_current(epoch)
        if not response.success:
            raise ServiceRejected(response.message or rejected_message, payload=response.raw)

        token = await self.token_strategy.acquire(response, before_persist=lambda: self._ensure_current(epoch))

        # A new credential supersedes whatever was in flight and whoever was signed in
        self._epoch += 1
        epoch = self._epoch
        self._session.user = None
        self.credential_store.set_user(None)

        user_data = response.user_payload()
        if user_data is None:
            # Credential only: the profile comes from the service
            profile_response = await self.auth_client.get_profile(token)
            self._ensure_current(epoch)
            user_data = profile_response.user_payload() if profile_response.success else None
            if user_data is None:
                raise ServiceRejected("Profile not received", payload=profile_response.raw)

        self._store_user(self._parse_profile(user_data))
        self.logger.info("Session established", user_id=self._session.user.id)
        return AuthResult.ok(message=response.message)

    @staticmethod
    def _validated(model, data, message: str):
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise InvalidInput(
                message,
                details={"fields": [".".join(str(part) for part in err["loc"]) for err in e.errors()]},
            ) from e

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def login(self, credentials: Union[LoginCredentials, Mapping[str, Any]]) -> AuthResult:
        """Sign in with email and password."""

        async def attempt(epoch: int) -> AuthResult:
            creds = self._validated(LoginCredentials, credentials, "Email and password are required")
            response = await self.auth_client.login(creds.email, creds.password)
            return await self._establish(response, epoch, "Login failed")

        return await self._run("login", attempt)

    async def register(self, user_data: Union[RegistrationData, Mapping[str, Any]]) -> AuthResult:
        """Create an account and sign in; the email may still be unverified."""

        async def attempt(epoch: int) -> AuthResult:
            data = self._validated(RegistrationData, user_data, "Email, password and username are required")
            response = await self.auth_client.register(
                data.email, data.password, data.username, data.name, data.lastname
            )
            return await self._establish(response, epoch, "Registration failed")

        return await self._run("register", attempt)

    def logout(self) -> None:
        """Clear credential, cached profile and session. Idempotent."""
        self._epoch += 1
        self.credential_store.clear()
        self._session.user = None
        self._session.error = None
        self._session.status = self._resting_status()
        self.logger.info("Signed out", epoch=self._epoch)
        self._publish(SessionEvent.LOGIN_REQUIRED)

    def reset_session(self) -> None:
        """Manual full reset, the only way out of session_error."""
        self._epoch += 1
        self.credential_store.clear()
        self._session = Session(status=SessionStatus.UNAUTHENTICATED)
        self.logger.warning("Session reset requested", epoch=self._epoch)
        self._publish(SessionEvent.SESSION_RESET)
        self._publish(SessionEvent.LOGIN_REQUIRED)

    def update_profile(self, patch: Mapping[str, Any]) -> None:
        """Merge ``patch`` into the cached profile; no remote call."""
        user = self._session.user
        if user is None:
            return
        try:
            self._store_user(user.merged(patch))
        except CorruptSession:
            self.logger.warning("Profile update dropped, session was repaired")
            return
        except ValidationError as e:
            self.logger.warning("Profile update rejected", error_count=e.error_count())
            return
        self._publish()

    async def verify_email(self, token: str, user_id: str) -> AuthResult:
        """Confirm an email address; marks the held user verified if it matches."""

        async def attempt(epoch: int) -> AuthResult:
            response = await self.auth_client.verify_email(token, user_id)
            self._ensure_current(epoch)
            if response.success:
                user = self._session.user
                if user is not None and user.id == str(user_id):
                    self._store_user(user.merged({"emailVerified": True}))
            return AuthResult.from_response(response)

        return await self._run(
            "verify_email",
            attempt,
            network_message="Connection error while verifying email",
            record_error=False,
        )

    async def resend_verification_email(self, email: str) -> AuthResult:
        async def attempt(epoch: int) -> AuthResult:
            return AuthResult.from_response(await self.auth_client.resend_verification(email))

        return await self._run(
            "resend_verification_email",
            attempt,
            network_message="Connection error while resending verification",
            record_error=False,
        )

    async def request_password_reset(self, email: str) -> AuthResult:
        async def attempt(epoch: int) -> AuthResult:
            return AuthResult.from_response(await self.auth_client.request_password_reset(email))

        return await self._run("request_password_reset", attempt, record_error=False)

    async def reset_password(self, token: str, user_id: str, password: str) -> AuthResult:
        async def attempt(epoch: int) -> AuthResult:
            return AuthResult.from_response(await self.auth_client.reset_password(token, user_id, password))

        return await self._run("reset_password", attempt, record_error=False)

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self._held_user() is not None

    def is_admin(self) -> bool:
        user = self._held_user()
        return user is not None and user.role == "admin"

    def is_email_verified(self) -> bool:
        user = self._held_user()
        return user is not None and user.email_verified is True

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def initialize(self) -> Session:
        """Reconcile local state with the service. Overlapping calls are ignored."""
        if self._reconciling:
            self.logger.debug("Reconciliation already in flight, ignoring trigger")
            return self.session
        if self._session.session_error:
            self.logger.warning("Session error pending, reset_session() required before reconciling")
            return self.session

        self._reconciling = True
        epoch = self._epoch
        try:
            with bind_operation("reconcile", epoch=epoch):
                await self._reconcile(epoch)
        finally:
            self._reconciling = False
        return self.session

    async def handle_connectivity_restored(self) -> Session:
        self.logger.info("Connectivity restored, reconciling session")
        return await self.initialize()

    async def _reconcile(self, epoch: int) -> None:
        self._update(loading=True, error=None, status=SessionStatus.LOADING)
        try:
            try:
                self.credential_store.require_available()
            except StorageUnavailable as e:
                self.logger.error("Credential storage unavailable, session cannot be kept", details=e.details)
                self._session.session_error = True
                self._session.error = e.message
                return

            held = self._session.user is not None
            if self.consistency_guard.enforce_stored(held_user_present=held) is ConsistencyState.CORRUPT:
                self._after_repair("stored user without credential at reconciliation")
                return

            token = self.credential_store.get_token()
            cached = self.credential_store.get_user()

            if token is None:
                self._session.user = None
                return
            self.credential_store.diagnose()

            if cached is not None:
                # Optimistic: show the cached profile while the service confirms it
                self._update(user=cached, status=SessionStatus.AUTHENTICATED)

            response: Optional[ServiceResponse]
            try:
                response = await self.auth_client.get_profile(token)
            except NetworkError as e:
                self.logger.warning("Profile verification unreachable", error=e.message)
                response = None

            if epoch != self._epoch or self.credential_store.get_token() != token:
                self.logger.info("Discarding reconciliation result, session changed meanwhile")
                return

            profile = self._profile_from(response)
            if profile is not None:
                try:
                    self._store_user(profile)
                except CorruptSession:
                    return
                self.logger.info("Session verified with the service", user_id=profile.id)
                return

            self._on_verification_failed(response)
        finally:
            self._settle()

    def _profile_from(self, response: Optional[ServiceResponse]) -> Optional[UserProfile]:
        if response is None or not response.success:
            return None
        user_data = response.user_payload()
        if user_data is None:
            return None
        try:
            return self._parse_profile(user_data)
        except ServiceRejected as e:
            self.logger.warning("Ignoring invalid profile from service", details=e.details)
            return None

    def _on_verification_failed(self, response: Optional[ServiceResponse]) -> None:
        status_code: Optional[int] = response.status_code if response is not None else None
        if self.on_verification_failure is VerificationFailurePolicy.KEEP_SESSION:
            self.logger.warning("Profile verification failed, keeping local session", status_code=status_code)
            return
        self.logger.warning("Profile verification failed, signing out", status_code=status_code)
        self.logout()
