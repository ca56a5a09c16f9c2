from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

import jwt

from auth_api.application.dto.auth import AccessTokenPayload, SignupAssertion
from auth_api.application.ports.token_port import TokenPort
from auth_api.domain.exceptions import (
    AccessTokenExpiredError,
    AccessTokenInvalidError,
    UnauthorizedError,
)


REFRESH_TOKEN_LENGTH = 24
SIGNUP_ASSERTION_TYPE = "oauth_signup"

_BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


class JwtTokenService(TokenPort):
    def __init__(
        self,
        *,
        jwt_secret: str,
        access_ttl_minutes: int,
        refresh_ttl_days: int,
        signup_ttl_minutes: int = 15,
    ):
        self._jwt_secret = jwt_secret
        self._access_ttl_minutes = access_ttl_minutes
        self._refresh_ttl_days = refresh_ttl_days
        self._signup_ttl_minutes = signup_ttl_minutes

    def create_access_token(self, *, auth_id: str, now: datetime) -> tuple[str, datetime]:
        exp = now + timedelta(minutes=self._access_ttl_minutes)
        payload = {
            "sub": auth_id,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }
        token = jwt.encode(payload, self._jwt_secret, algorithm="HS256")
        return token, exp

    def decode_access_token(self, *, token: str) -> AccessTokenPayload:
        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=["HS256"],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AccessTokenExpiredError() from exc
        except jwt.PyJWTError as exc:
            raise AccessTokenInvalidError() from exc

        # Signup assertions share the secret but must never pass as access tokens.
        if payload.get("typ") is not None:
            raise AccessTokenInvalidError("Invalid token type")

        auth_id = payload.get("sub")
        if not auth_id or not isinstance(auth_id, str):
            raise AccessTokenInvalidError("Invalid token subject")

        return AccessTokenPayload(
            auth_id=auth_id,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def generate_refresh_token(self) -> str:
        value = int.from_bytes(secrets.token_bytes(16), "big")
        return _to_base36(value).rjust(REFRESH_TOKEN_LENGTH, "0")[-REFRESH_TOKEN_LENGTH:]

    def hash_refresh_token(self, *, refresh_token: str) -> str:
        return hashlib.sha256(refresh_token.encode("utf-8")).hexdigest()

    def refresh_token_expires_at(self, *, now: datetime) -> datetime:
        return now + timedelta(days=self._refresh_ttl_days)

    def create_signup_assertion(self, *, assertion: SignupAssertion, now: datetime) -> str:
        exp = now + timedelta(minutes=self._signup_ttl_minutes)
        payload = {
            "typ": SIGNUP_ASSERTION_TYPE,
            "sub": assertion.provider_id,
            "provider": assertion.provider,
            "email": assertion.email,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }
        return jwt.encode(payload, self._jwt_secret, algorithm="HS256")

    def decode_signup_assertion(self, *, token: str) -> SignupAssertion:
        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=["HS256"],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise UnauthorizedError("Signup session expired. Please sign in again.") from exc
        except jwt.PyJWTError as exc:
            raise UnauthorizedError("Invalid signup token") from exc

        if payload.get("typ") != SIGNUP_ASSERTION_TYPE:
            raise UnauthorizedError("Invalid signup token")
        provider = payload.get("provider")
        if provider not in ("google", "apple"):
            raise UnauthorizedError("Invalid signup token")

        email = payload.get("email")
        return SignupAssertion(
            provider=provider,
            provider_id=str(payload["sub"]),
            email=email if isinstance(email, str) else None,
        )
