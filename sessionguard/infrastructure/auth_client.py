"""
Authentication Service Client

HTTP client for the remote authentication service. Each endpoint returns a
ServiceResponse built from whatever the service answered, including
``success=False`` bodies and non-2xx statuses; only requests that never
complete raise, as NetworkError.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from sessionguard.config.settings import SessionGuardSettings
from sessionguard.exceptions import NetworkError
from sessionguard.infrastructure.base_client import BaseExternalClient
from sessionguard.models.auth import ServiceResponse
from sessionguard.models.interfaces import IAuthServiceClient


class AuthServiceClient(BaseExternalClient, IAuthServiceClient):
    """httpx-based implementation of IAuthServiceClient.

    Args:
        base_url: Service root, e.g. ``http://localhost:4000/api/v1``
        timeout: Per-request timeout in seconds; None leaves requests unbounded
        retries: Extra attempts for GET requests that never reached the service
        retry_delay: Base delay between those attempts (doubled each time)
        http_client: Pre-built AsyncClient (tests inject one with a MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retries: int = 0,
        retry_delay: float = 0.5,
    ):
        super().__init__(client_name="auth_client", service_name="AuthService")
        self.base_url = base_url.rstrip("/")
        self.retries = retries
        self.retry_delay = retry_delay
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(cls, settings: SessionGuardSettings) -> "AuthServiceClient":
        return cls(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            retries=settings.request_retries,
            retry_delay=settings.retry_delay,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "AuthServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        # Absolute URL so an injected client without base_url works too
        return f"{self.base_url}{path}"

    async def _send(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            return await self._http.request(method, self._url(path), json=json_body, headers=headers)
        except httpx.TransportError as e:
            raise NetworkError(
                f"Could not reach the authentication service: {e}",
                details={"method": method, "path": path, "error_type": type(e).__name__},
            ) from e

    @staticmethod
    def _parse(response: httpx.Response) -> ServiceResponse:
        headers = {k.lower(): v for k, v in response.headers.items()}
        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            message = None if response.is_success else f"Server error: {response.status_code} {response.reason_phrase}"
            return ServiceResponse(
                success=False,
                message=message or "Unexpected response from the authentication service",
                status_code=response.status_code,
                headers=headers,
            )

        data = body.get("data")
        success = bool(body.get("success")) and response.is_success
        message = body.get("message")
        if not response.is_success and not message:
            message = f"Server error: {response.status_code} {response.reason_phrase}"
        return ServiceResponse(
            success=success,
            message=message,
            data=data if isinstance(data, dict) else {},
            status_code=response.status_code,
            headers=headers,
            raw=body,
        )

    async def _call(
        self,
        operation_name: str,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> ServiceResponse:
        retries = self.retries if method == "GET" else 0
        response = await self.call_external(
            operation_name,
            self._send,
            method,
            path,
            json_body,
            token,
            retries=retries,
            retry_delay=self.retry_delay,
            retry_on=(NetworkError,),
        )
        parsed = self._parse(response)
        if not parsed.success:
            self.logger.info(
                "Authentication service rejected request",
                operation=operation_name,
                status_code=parsed.status_code,
                message=parsed.message,
            )
        return parsed

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> ServiceResponse:
        return await self._call("login", "POST", "/auth/login", {"email": email, "password": password})

    async def register(
        self,
        email: str,
        password: str,
        username: str,
        name: Optional[str] = None,
        lastname: Optional[str] = None,
    ) -> ServiceResponse:
        body = {
            "email": email,
            "password": password,
            "username": username,
            "name": name,
            "lastname": lastname,
        }
        return await self._call("register", "POST", "/auth/register", body)

    async def get_profile(self, token: str) -> ServiceResponse:
        return await self._call("get_profile", "GET", "/auth/profile", token=token)

    async def exchange_token(self, token_id: str) -> ServiceResponse:
        return await self._call("exchange_token", "GET", f"/auth/token/{quote(token_id, safe='')}")

    async def verify_email(self, token: str, user_id: str) -> ServiceResponse:
        return await self._call("verify_email", "POST", "/auth/verify-email", {"token": token, "userId": user_id})

    async def resend_verification(self, email: str) -> ServiceResponse:
        return await self._call("resend_verification", "POST", "/auth/resend-verification", {"email": email})

    async def request_password_reset(self, email: str) -> ServiceResponse:
        return await self._call(
            "request_password_reset", "POST", "/auth/request-password-reset", {"email": email}
        )

    async def reset_password(self, token: str, user_id: str, password: str) -> ServiceResponse:
        body = {"token": token, "userId": user_id, "password": password}
        return await self._call("reset_password", "POST", "/auth/reset-password", body)
