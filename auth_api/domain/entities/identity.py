from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal


AuthProvider = Literal["phone", "google", "apple"]
OAuthProvider = Literal["google", "apple"]
Gender = Literal["male", "female"]


@dataclass(frozen=True)
class AuthIdentity:
    id: str
    provider: AuthProvider
    identifier: str
    email: str | None


@dataclass(frozen=True)
class UserProfile:
    id: str
    name: str
    gender: Gender
    birth_year: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class OtpChallenge:
    phone: str
    code: str
    attempts: int
    expires_at: datetime
    created_at: datetime


@dataclass(frozen=True)
class RefreshToken:
    id: str
    auth_id: str
    token_hash: str
    device_info: dict[str, Any] | None
    expires_at: datetime
    revoked_at: datetime | None
    last_used_at: datetime | None
    created_at: datetime
