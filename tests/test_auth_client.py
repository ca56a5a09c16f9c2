from __future__ import annotations

import asyncio
import gc
import json
import logging
import time

import httpx
import jwt
import pytest

from auth_api.client.api_client import AuthApiClient, AuthApiError
from auth_api.client.refresh_coordinator import RefreshCoordinator
from auth_api.client.session import TokenStore, needs_token_refresh


def _access_token(*, issued_ago: int = 0, lifetime: int = 900, sub: str = "auth-1") -> str:
    now = int(time.time())
    return jwt.encode({"sub": sub, "iat": now - issued_ago, "exp": now - issued_ago + lifetime}, "k", algorithm="HS256")


def _refresh_token(n: int) -> str:
    return f"{n:024d}"


class FakeAuthServer:
    def __init__(self):
        self.refresh_calls = 0
        self.me_calls = 0
        self.logout_calls = 0
        self.valid_access: set[str] = set()
        self.refresh_status = 200
        self.me_error_code: str | None = None
        self.logout_status = 200

    def issue(self) -> tuple[str, str]:
        access = _access_token(sub=f"auth-{self.refresh_calls}")
        self.valid_access.add(access)
        return access, _refresh_token(self.refresh_calls)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/token/refresh":
            self.refresh_calls += 1
            await asyncio.sleep(0.01)
            if self.refresh_status != 200:
                return httpx.Response(
                    self.refresh_status,
                    json={"error": "Invalid or expired refresh token", "code": "INVALID_REFRESH_TOKEN"},
                )
            access, refresh = self.issue()
            return httpx.Response(200, json={"accessToken": access, "refreshToken": refresh, "tokenType": "bearer"})

        if request.url.path == "/users/me":
            self.me_calls += 1
            if self.me_error_code is not None:
                code, self.me_error_code = self.me_error_code, None
                return httpx.Response(401, json={"error": "Access token rejected", "code": code})
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            if token not in self.valid_access:
                return httpx.Response(401, json={"error": "Access token expired", "code": "EXPIRED_TOKEN"})
            return httpx.Response(200, json={"id": "auth-1", "name": "Ada Lovelace"})

        if request.url.path == "/auth/logout":
            self.logout_calls += 1
            if self.logout_status != 200:
                return httpx.Response(self.logout_status, json={"error": "Invalid refresh token", "code": "UNAUTHORIZED"})
            return httpx.Response(200, json={"message": "Logged out"})

        if request.url.path == "/auth/phone/login":
            body = json.loads(request.content)
            if body["code"] != "123456":
                return httpx.Response(401, json={"error": "Invalid OTP! Please check and try again.", "code": "OTP_INVALID"})
            access, refresh = self.issue()
            return httpx.Response(200, json={"accessToken": access, "refreshToken": refresh, "tokenType": "bearer"})

        return httpx.Response(404, json={"error": "Resource not found", "code": "NOT_FOUND"})


def _client(server: FakeAuthServer, store: TokenStore, logouts: list | None = None) -> AuthApiClient:
    return AuthApiClient(
        base_url="https://api.test",
        store=store,
        transport=httpx.MockTransport(server.handler),
        on_logout=(lambda: logouts.append(True)) if logouts is not None else None,
    )


def test_needs_token_refresh_uses_lifetime_fraction():
    now = time.time()
    fresh = _access_token(issued_ago=0, lifetime=900)
    near_expiry = _access_token(issued_ago=820, lifetime=900)

    assert needs_token_refresh(fresh, now=now) is False
    assert needs_token_refresh(near_expiry, now=now) is True
    assert needs_token_refresh("garbage") is True


def test_sign_in_stores_tokens():
    server = FakeAuthServer()
    store = TokenStore()

    async def scenario():
        async with _client(server, store) as client:
            await client.sign_in_with_phone(phone="2125550123", code="123456")

    asyncio.run(scenario())

    assert store.is_authenticated
    assert store.refresh_token == _refresh_token(0)


def test_failed_sign_in_raises_envelope_error():
    server = FakeAuthServer()
    store = TokenStore()

    async def scenario():
        async with _client(server, store) as client:
            await client.sign_in_with_phone(phone="2125550123", code="000000")

    with pytest.raises(AuthApiError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "OTP_INVALID"
    assert not store.is_authenticated


def test_concurrent_requests_share_one_refresh():
    server = FakeAuthServer()
    store = TokenStore(access_token=_access_token(issued_ago=880, lifetime=900), refresh_token=_refresh_token(99))

    async def scenario():
        async with _client(server, store) as client:
            return await asyncio.gather(*(client.get_me() for _ in range(5)))

    results = asyncio.run(scenario())

    assert server.refresh_calls == 1
    assert len(results) == 5
    assert all(result["id"] == "auth-1" for result in results)
    assert store.refresh_token == _refresh_token(1)


def test_expired_token_response_triggers_one_retry():
    server = FakeAuthServer()
    store = TokenStore(access_token=_access_token(), refresh_token=_refresh_token(99))

    async def scenario():
        async with _client(server, store) as client:
            return await client.get_me()

    result = asyncio.run(scenario())

    assert result["name"] == "Ada Lovelace"
    assert server.refresh_calls == 1
    assert server.me_calls == 2


@pytest.mark.parametrize("code", ["INVALID_TOKEN", "INVALID_REFRESH_TOKEN"])
def test_invalid_token_ends_session(code):
    server = FakeAuthServer()
    access, refresh = server.issue()
    server.me_error_code = code
    store = TokenStore(access_token=access, refresh_token=refresh)
    logouts: list = []

    async def scenario():
        async with _client(server, store, logouts) as client:
            await client.get_me()

    with pytest.raises(AuthApiError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.code == code
    assert not store.is_authenticated
    assert logouts == [True]


def test_rejected_refresh_ends_session():
    server = FakeAuthServer()
    server.refresh_status = 401
    store = TokenStore(access_token=_access_token(issued_ago=880, lifetime=900), refresh_token=_refresh_token(99))
    logouts: list = []

    async def scenario():
        async with _client(server, store, logouts) as client:
            await client.get_me()

    with pytest.raises(AuthApiError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.code == "INVALID_REFRESH_TOKEN"
    assert store.refresh_token is None
    assert logouts == [True]
    assert server.me_calls == 0


def test_authenticated_request_without_tokens():
    server = FakeAuthServer()
    store = TokenStore()

    async def scenario():
        async with _client(server, store) as client:
            await client.get_me()

    with pytest.raises(AuthApiError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.code == "MISSING_TOKEN"
    assert server.me_calls == 0


def test_log_out_clears_tokens_even_when_server_refuses():
    server = FakeAuthServer()
    server.logout_status = 401
    access, refresh = server.issue()
    store = TokenStore(access_token=access, refresh_token=refresh)
    logouts: list = []

    async def scenario():
        async with _client(server, store, logouts) as client:
            await client.log_out()

    asyncio.run(scenario())

    assert server.logout_calls == 1
    assert not store.is_authenticated
    assert logouts == [True]


def test_coordinator_releases_handle_after_failure():
    calls = []

    async def failing_refresh():
        calls.append(1)
        await asyncio.sleep(0)
        raise RuntimeError("network down")

    async def scenario():
        coordinator = RefreshCoordinator(failing_refresh)
        for _ in range(2):
            with pytest.raises(RuntimeError):
                await coordinator.refresh()
        assert coordinator.in_flight is False

    asyncio.run(scenario())

    assert len(calls) == 2


def test_cancelled_waiter_does_not_cancel_shared_refresh():
    finished = []

    async def slow_refresh():
        await asyncio.sleep(0.05)
        finished.append(True)

    async def scenario():
        coordinator = RefreshCoordinator(slow_refresh)
        first = asyncio.ensure_future(coordinator.refresh())
        second = asyncio.ensure_future(coordinator.refresh())
        await asyncio.sleep(0.01)
        first.cancel()
        await second
        assert first.cancelled()

    asyncio.run(scenario())

    assert finished == [True]


def test_failure_with_no_remaining_waiters_is_retrieved(caplog):
    unhandled = []

    async def failing_refresh():
        await asyncio.sleep(0.02)
        raise RuntimeError("network down")

    async def scenario():
        asyncio.get_running_loop().set_exception_handler(lambda _loop, context: unhandled.append(context))
        coordinator = RefreshCoordinator(failing_refresh)
        waiter = asyncio.ensure_future(coordinator.refresh())
        await asyncio.sleep(0.005)
        waiter.cancel()
        await asyncio.sleep(0.05)
        assert coordinator.in_flight is False
        gc.collect()

    with caplog.at_level(logging.WARNING, logger="auth_api.client.refresh_coordinator"):
        asyncio.run(scenario())
    gc.collect()

    assert unhandled == []
    assert "refresh_failed error=network down" in caplog.text
