"""
Token acquisition strategy.

The authentication service hands out credentials in one of three ways:
a full token in the ``X-Auth-Token`` response header, a token in the JSON
body, or a short-lived ``tokenId`` handle that must be exchanged for the
real token with a follow-up request. This module hides that variability:
callers get either a token that has been verified to be readable from
storage, or a definitive failure.
"""

from typing import Callable, Optional

from sessionguard.exceptions import NetworkError, StorageWriteFailed, TokenRecoveryFailed
from sessionguard.infrastructure.logging import get_logger
from sessionguard.infrastructure.persistence.credential_store import CredentialStore
from sessionguard.models.auth import ServiceResponse, looks_like_jwt
from sessionguard.models.interfaces import IAuthServiceClient


TOKEN_HEADER = "X-Auth-Token"


class TokenAcquisitionStrategy:
    """Resolve, persist and verify the credential from a login/register answer.

    Args:
        auth_client: Used only for the token-handle exchange
        credential_store: Where the resolved token is written
        require_jwt_format: Reject tokens that fail the structural check
            instead of only logging them
    """

    def __init__(
        self,
        auth_client: IAuthServiceClient,
        credential_store: CredentialStore,
        require_jwt_format: bool = False,
    ):
        self.auth_client = auth_client
        self.credential_store = credential_store
        self.require_jwt_format = require_jwt_format
        self.logger = get_logger(__name__)

    async def resolve(self, response: ServiceResponse) -> str:
        """Extract the token from a successful login/register answer.

        Raises:
            TokenRecoveryFailed: No token in the answer, or the handle
                exchange failed
        """
        header_token = response.header(TOKEN_HEADER)
        if looks_like_jwt(header_token):
            return self._checked(header_token, source="header")

        token = response.data.get("token")
        if isinstance(token, str) and token.strip():
            return self._checked(token, source="body")

        token_id = response.data.get("tokenId")
        if token_id:
            return await self._exchange(str(token_id))

        raise TokenRecoveryFailed("Token not received")

    async def _exchange(self, token_id: str) -> str:
        self.logger.info("Exchanging token handle for full token")
        try:
            exchanged = await self.auth_client.exchange_token(token_id)
        except NetworkError as e:
            raise TokenRecoveryFailed(
                "Could not recover the authentication token",
                details={"cause": e.message},
            ) from e

        token = exchanged.data.get("token") if exchanged.success else None
        if not isinstance(token, str) or not token:
            raise TokenRecoveryFailed(
                "Could not recover the authentication token",
                details={"status_code": exchanged.status_code, "message": exchanged.message},
            )
        return self._checked(token, source="exchange")

    def _checked(self, token: str, source: str) -> str:
        if not looks_like_jwt(token):
            if self.require_jwt_format:
                raise TokenRecoveryFailed("Received token is malformed", details={"source": source})
            self.logger.warning("Token does not look like a JWT, keeping it", source=source, token_length=len(token))
        else:
            self.logger.debug("Token resolved", source=source, token_length=len(token))
        return token

    def persist(self, token: str) -> str:
        """Write the token and read it straight back.

        Raises:
            StorageWriteFailed: Nothing, or something different, was read back
        """
        self.credential_store.set_token(token)
        stored: Optional[str] = self.credential_store.get_token()
        if stored != token:
            raise StorageWriteFailed(
                "Could not save the authentication token",
                details={
                    "written_length": len(token),
                    "read_length": len(stored) if stored else 0,
                },
            )
        return stored

    async def acquire(
        self,
        response: ServiceResponse,
        before_persist: Optional[Callable[[], None]] = None,
    ) -> str:
        """resolve() then persist().

        ``before_persist`` runs between the two and may raise to abandon the
        token before anything is written, e.g. when the session moved on
        while a token handle was being exchanged.
        """
        token = await self.resolve(response)
        if before_persist is not None:
            before_persist()
        return self.persist(token)
