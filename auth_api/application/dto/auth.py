from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from auth_api.domain.entities.identity import Gender, OAuthProvider


OtpPurpose = Literal["login", "signup"]


@dataclass(frozen=True)
class RequestOtpInput:
    phone: str
    purpose: OtpPurpose


@dataclass(frozen=True)
class RequestOtpOutput:
    user_exists: bool


@dataclass(frozen=True)
class ProfileInput:
    name: str
    gender: Gender
    birth_year: int


@dataclass(frozen=True)
class PhoneSignupInput:
    phone: str
    code: str
    profile: ProfileInput
    device_info: dict[str, Any] | None


@dataclass(frozen=True)
class PhoneLoginInput:
    phone: str
    code: str
    device_info: dict[str, Any] | None


@dataclass(frozen=True)
class OAuthSignInInput:
    provider: OAuthProvider
    id_token: str
    device_info: dict[str, Any] | None


@dataclass(frozen=True)
class OAuthSignupInput:
    provider: OAuthProvider
    provider_id: str
    email: str | None
    signup_token: str
    profile: ProfileInput
    device_info: dict[str, Any] | None


@dataclass(frozen=True)
class RefreshSessionInput:
    refresh_token: str


@dataclass(frozen=True)
class LogoutInput:
    refresh_token: str


@dataclass(frozen=True)
class AuthTokensOutput:
    auth_id: str
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


@dataclass(frozen=True)
class PendingSignupOutput:
    """Stateless result of an OAuth sign-in for an unknown subject.

    Nothing is persisted; ``signup_token`` is a short-lived signed assertion of
    ``provider``/``provider_id``/``email`` that the signup call must present.
    """

    provider: OAuthProvider
    provider_id: str
    email: str | None
    signup_token: str


@dataclass(frozen=True)
class OAuthClaims:
    provider: OAuthProvider
    subject: str
    email: str | None
    email_verified: bool


@dataclass(frozen=True)
class AccessTokenPayload:
    auth_id: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class SignupAssertion:
    provider: OAuthProvider
    provider_id: str
    email: str | None


@dataclass(frozen=True)
class SessionOutput:
    id: str
    device_info: dict[str, Any] | None
    created_at: datetime
    last_used_at: datetime | None
    expires_at: datetime
