"""Tests for AuthServiceClient against an httpx MockTransport."""

import json

import httpx
import pytest

from sessionguard.config.settings import SessionGuardSettings
from sessionguard.exceptions import NetworkError
from sessionguard.infrastructure.auth_client import AuthServiceClient


BASE_URL = "http://auth.test/api/v1"


def build_client(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AuthServiceClient(base_url=BASE_URL + "/", http_client=http_client)


class TestRequests:

    @pytest.mark.asyncio
    async def test_login_posts_credentials(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"success": True, "data": {"token": "a.b.c"}},
                headers={"X-Auth-Token": "h.e.ader"},
            )

        client = build_client(handler)
        response = await client.login("ana@example.com", "secret")

        assert seen == {
            "method": "POST",
            "url": f"{BASE_URL}/auth/login",
            "body": {"email": "ana@example.com", "password": "secret"},
        }
        assert response.success is True
        assert response.data == {"token": "a.b.c"}
        assert response.header("x-auth-token") == "h.e.ader"
        assert response.header("X-Auth-Token") == "h.e.ader"

    @pytest.mark.asyncio
    async def test_profile_sends_bearer_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["path"] = request.url.path
            return httpx.Response(200, json={"success": True, "data": {"user": {"id": "u-1"}}})

        response = await build_client(handler).get_profile("a.b.c")

        assert seen == {"auth": "Bearer a.b.c", "path": "/api/v1/auth/profile"}
        assert response.user_payload() == {"id": "u-1"}

    @pytest.mark.asyncio
    async def test_exchange_token_uses_handle_in_path(self):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={"success": True, "data": {"token": "a.b.c"}})

        await build_client(handler).exchange_token("handle-7")

        assert paths == ["/api/v1/auth/token/handle-7"]

    @pytest.mark.asyncio
    async def test_exchange_token_handle_is_escaped(self):
        raw_paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            raw_paths.append(request.url.raw_path)
            return httpx.Response(200, json={"success": True, "data": {"token": "a.b.c"}})

        await build_client(handler).exchange_token("a/b c")

        assert raw_paths == [b"/api/v1/auth/token/a%2Fb%20c"]

    @pytest.mark.asyncio
    async def test_verify_email_and_reset_password_bodies(self):
        bodies = {}

        def handler(request: httpx.Request) -> httpx.Response:
            bodies[request.url.path.rsplit("/", 1)[-1]] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        client = build_client(handler)
        await client.verify_email("tok", "u-1")
        await client.reset_password("tok", "u-1", "new-secret")
        await client.request_password_reset("ana@example.com")
        await client.resend_verification("ana@example.com")

        assert bodies == {
            "verify-email": {"token": "tok", "userId": "u-1"},
            "reset-password": {"token": "tok", "userId": "u-1", "password": "new-secret"},
            "request-password-reset": {"email": "ana@example.com"},
            "resend-verification": {"email": "ana@example.com"},
        }


class TestResponseParsing:

    @pytest.mark.asyncio
    async def test_rejection_is_returned_not_raised(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"success": False, "message": "Invalid credentials"})

        response = await build_client(handler).login("ana@example.com", "wrong")

        assert response.success is False
        assert response.message == "Invalid credentials"
        assert response.status_code == 401
        assert response.raw == {"success": False, "message": "Invalid credentials"}

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>bad gateway</html>")

        response = await build_client(handler).get_profile("a.b.c")

        assert response.success is False
        assert response.message == "Server error: 502 Bad Gateway"
        assert response.raw == {}

    @pytest.mark.asyncio
    async def test_success_flag_requires_2xx(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"success": True})

        response = await build_client(handler).login("ana@example.com", "secret")

        assert response.success is False
        assert response.message == "Server error: 500 Internal Server Error"

    @pytest.mark.asyncio
    async def test_non_object_data_becomes_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "data": ["x"]})

        response = await build_client(handler).login("ana@example.com", "secret")

        assert response.success is True
        assert response.data == {}


class TestTransportFailures:

    @pytest.mark.asyncio
    async def test_connect_error_raises_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = build_client(handler)
        with pytest.raises(NetworkError) as exc_info:
            await client.login("ana@example.com", "secret")

        assert exc_info.value.details["path"] == "/auth/login"
        metrics = client.get_metrics()["metrics"]
        assert metrics["total_calls"] == 1
        assert metrics["failed_calls"] == 1

    @pytest.mark.asyncio
    async def test_successful_calls_are_counted(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True})

        client = build_client(handler)
        await client.resend_verification("ana@example.com")

        metrics = client.get_metrics()
        assert metrics["service"] == "AuthService"
        assert metrics["metrics"]["successful_calls"] == 1
        assert metrics["metrics"]["last_success_time"] is not None


class TestConstruction:

    def test_from_settings(self):
        settings = SessionGuardSettings(
            api_base_url="https://auth.example.com/api/v1/", request_timeout=5, request_retries=3,
        )
        client = AuthServiceClient.from_settings(settings)
        assert client.base_url == "https://auth.example.com/api/v1"
        assert client.retries == 3
        assert client.retry_delay == 0.5

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with AuthServiceClient(base_url=BASE_URL, http_client=http_client):
            pass
        assert http_client.is_closed is False
        await http_client.aclose()


class TestRetries:

    @pytest.mark.asyncio
    async def test_profile_fetch_is_retried(self):
        attempts = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["count"] += 1
            if attempts["count"] < 3:
                raise httpx.ConnectError("flaky", request=request)
            return httpx.Response(200, json={"success": True, "data": {"user": {"id": "u-1"}}})

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = AuthServiceClient(base_url=BASE_URL, http_client=http_client, retries=2, retry_delay=0)
        response = await client.get_profile("a.b.c")

        assert response.user_payload() == {"id": "u-1"}
        assert attempts["count"] == 3
        assert client.get_metrics()["metrics"]["successful_calls"] == 1

    @pytest.mark.asyncio
    async def test_login_is_never_retried(self):
        attempts = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["count"] += 1
            raise httpx.ConnectError("down", request=request)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = AuthServiceClient(base_url=BASE_URL, http_client=http_client, retries=2, retry_delay=0)
        with pytest.raises(NetworkError):
            await client.login("ana@example.com", "secret")

        assert attempts["count"] == 1

    @pytest.mark.asyncio
    async def test_unlisted_error_fails_fast(self):
        attempts = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["count"] += 1
            raise httpx.ConnectError("down", request=request)

        client = build_client(handler)
        with pytest.raises(NetworkError):
            await client.call_external(
                "login", client._send, "POST", "/auth/login", retries=2, retry_delay=0, retry_on=(ValueError,),
            )
        assert attempts["count"] == 1
