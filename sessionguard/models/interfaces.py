# File: sessionguard/models/interfaces.py
from abc import ABC, abstractmethod
from typing import Optional

from sessionguard.models.auth import ServiceResponse


class IKeyValueStorage(ABC):
    """Interface for durable local key/value storage.

    This is the contract browser ``localStorage`` offers: string keys,
    string values, synchronous access. Implementations are allowed to raise
    on any call (storage disabled, quota exceeded, location unwritable);
    the credential store converts those failures into "no effect".
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove ``key``. Removing an absent key is not an error."""
        pass


class IAuthServiceClient(ABC):
    """Interface for the remote authentication service.

    Every method returns the service's parsed answer, including answers
    with ``success=False`` and non-2xx statuses. Requests that never
    complete raise ``NetworkError``.
    """

    @abstractmethod
    async def login(self, email: str, password: str) -> ServiceResponse:
        """POST /auth/login"""
        pass

    @abstractmethod
    async def register(
        self,
        email: str,
        password: str,
        username: str,
        name: Optional[str] = None,
        lastname: Optional[str] = None,
    ) -> ServiceResponse:
        """POST /auth/register"""
        pass

    @abstractmethod
    async def get_profile(self, token: str) -> ServiceResponse:
        """GET /auth/profile with a bearer token."""
        pass

    @abstractmethod
    async def exchange_token(self, token_id: str) -> ServiceResponse:
        """GET /auth/token/{token_id}, unauthenticated: the handle is the proof."""
        pass

    @abstractmethod
    async def verify_email(self, token: str, user_id: str) -> ServiceResponse:
        """POST /auth/verify-email"""
        pass

    @abstractmethod
    async def resend_verification(self, email: str) -> ServiceResponse:
        """POST /auth/resend-verification"""
        pass

    @abstractmethod
    async def request_password_reset(self, email: str) -> ServiceResponse:
        """POST /auth/request-password-reset"""
        pass

    @abstractmethod
    async def reset_password(self, token: str, user_id: str, password: str) -> ServiceResponse:
        """POST /auth/reset-password"""
        pass
