from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from auth_api.client.refresh_coordinator import RefreshCoordinator
from auth_api.client.session import TokenStore, needs_token_refresh


logger = logging.getLogger(__name__)


_LOGOUT_CODES = {"INVALID_TOKEN", "INVALID_REFRESH_TOKEN"}


class AuthApiError(Exception):
    def __init__(self, status_code: int, code: str, error: str, details: Any = None):
        super().__init__(f"{status_code} {code}: {error}")
        self.status_code = status_code
        self.code = code
        self.error = error
        self.details = details

    @classmethod
    def from_response(cls, response: httpx.Response) -> "AuthApiError":
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return cls(response.status_code, "INVALID_RESPONSE", "An unexpected error occurred.")
        return cls(
            response.status_code,
            str(body.get("code") or "UNKNOWN_ERROR"),
            str(body.get("error") or "An unexpected error occurred."),
            body.get("details"),
        )


class AuthApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        store: TokenStore | None = None,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
        on_logout: Callable[[], None] | None = None,
    ):
        self.store = store or TokenStore()
        self._on_logout = on_logout
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self._coordinator = RefreshCoordinator(self._refresh_tokens)

    async def __aenter__(self) -> "AuthApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # public endpoints

    async def send_otp(self, *, phone: str, purpose: str) -> dict[str, Any]:
        return await self._post("/auth/phone/otp", {"phone": phone, "purpose": purpose})

    async def sign_up_with_phone(
        self,
        *,
        phone: str,
        code: str,
        name: str,
        gender: str,
        birth_year: int,
        device_info: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        data = await self._post(
            "/auth/phone/signup",
            {
                "phone": phone,
                "code": code,
                "name": name,
                "gender": gender,
                "birthYear": birth_year,
                "deviceInfo": device_info,
            },
        )
        return self._store_tokens(data)

    async def sign_in_with_phone(
        self,
        *,
        phone: str,
        code: str,
        device_info: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        data = await self._post(
            "/auth/phone/login",
            {"phone": phone, "code": code, "deviceInfo": device_info},
        )
        return self._store_tokens(data)

    async def sign_in_with_google(self, *, id_token: str, device_info: dict[str, Any] | None = None) -> dict[str, Any]:
        data = await self._post("/auth/google", {"idToken": id_token, "deviceInfo": device_info})
        return self._store_tokens(data)

    async def sign_in_with_apple(self, *, id_token: str, device_info: dict[str, Any] | None = None) -> dict[str, Any]:
        data = await self._post("/auth/apple", {"idToken": id_token, "deviceInfo": device_info})
        return self._store_tokens(data)

    async def sign_up_with_oauth(
        self,
        *,
        pending: dict[str, Any],
        name: str,
        gender: str,
        birth_year: int,
        device_info: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Completes a sign-in that answered ``needsSignup``; ``pending`` is that response body."""
        data = await self._post(
            "/auth/oauth/signup",
            {
                "provider": pending["provider"],
                "providerId": pending["providerId"],
                "email": pending.get("email"),
                "signupToken": pending["signupToken"],
                "name": name,
                "gender": gender,
                "birthYear": birth_year,
                "deviceInfo": device_info,
            },
        )
        return self._store_tokens(data)

    async def refresh_tokens(self) -> None:
        await self._coordinator.refresh()

    async def log_out(self) -> None:
        refresh_token = self.store.refresh_token
        try:
            if refresh_token:
                await self._post("/auth/logout", {"refreshToken": refresh_token})
        except (AuthApiError, httpx.HTTPError) as exc:
            logger.debug("auth_client: remote_logout_failed error=%s", exc)
        finally:
            self._end_session()

    # private endpoints

    async def get_me(self) -> dict[str, Any]:
        return await self.request("GET", "/users/me", authenticated=True)

    async def list_sessions(self) -> dict[str, Any]:
        return await self.request("GET", "/auth/sessions", authenticated=True)

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        authenticated: bool = False,
    ) -> dict[str, Any]:
        if not authenticated:
            response = await self._http.request(method, url, json=json)
            return self._parse(response)

        if not self.store.access_token:
            self._end_session()
            raise AuthApiError(401, "MISSING_TOKEN", "Access token required")

        if needs_token_refresh(self.store.access_token):
            logger.debug("auth_client: proactive_refresh url=%s", url)
            await self._coordinator.refresh()

        response = await self._send_authenticated(method, url, json)
        if response.status_code == 401 and self._error_code(response) == "EXPIRED_TOKEN":
            logger.debug("auth_client: access_token_expired url=%s retrying_after_refresh", url)
            await self._coordinator.refresh()
            response = await self._send_authenticated(method, url, json)

        if response.status_code == 401 and self._error_code(response) in _LOGOUT_CODES:
            self._end_session()
        return self._parse(response)

    async def _send_authenticated(self, method: str, url: str, json: dict[str, Any] | None) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.store.access_token}"}
        return await self._http.request(method, url, json=json, headers=headers)

    async def _refresh_tokens(self) -> None:
        refresh_token = self.store.refresh_token
        if not refresh_token:
            self._end_session()
            raise AuthApiError(401, "INVALID_REFRESH_TOKEN", "No refresh token found")

        response = await self._http.post("/auth/token/refresh", json={"refreshToken": refresh_token})
        if response.status_code == 401:
            logger.info("auth_client: refresh_rejected code=%s logging_out", self._error_code(response))
            self._end_session()
        self._store_tokens(self._parse(response))

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request("POST", url, json=payload)

    def _store_tokens(self, data: dict[str, Any]) -> dict[str, Any]:
        if "accessToken" in data and "refreshToken" in data:
            self.store.set_tokens(access_token=data["accessToken"], refresh_token=data["refreshToken"])
        return data

    def _end_session(self) -> None:
        self.store.clear()
        if self._on_logout is not None:
            self._on_logout()

    @staticmethod
    def _error_code(response: httpx.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("code") if isinstance(body, dict) else None

    @staticmethod
    def _parse(response: httpx.Response) -> dict[str, Any]:
        if response.status_code >= 400:
            raise AuthApiError.from_response(response)
        return response.json()
