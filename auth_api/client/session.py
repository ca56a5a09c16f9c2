from __future__ import annotations

import time
from dataclasses import dataclass

import jwt


PROACTIVE_REFRESH_FRACTION = 0.1


@dataclass
class TokenStore:
    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def set_tokens(self, *, access_token: str, refresh_token: str) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None


def needs_token_refresh(access_token: str, *, now: float | None = None) -> bool:
    """True once less than a tenth of the token's lifetime remains, or if it cannot be read."""
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
        issued_at = int(claims["iat"])
        expires_at = int(claims["exp"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError):
        return True

    current = time.time() if now is None else now
    threshold = (expires_at - issued_at) * PROACTIVE_REFRESH_FRACTION
    return expires_at - current <= threshold
