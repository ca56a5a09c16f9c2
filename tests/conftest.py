from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

import pytest
from sqlalchemy.exc import OperationalError

from auth_api.application.dto.auth import OAuthClaims
from auth_api.domain.entities.identity import AuthIdentity, OtpChallenge, RefreshToken, UserProfile
from auth_api.infrastructure.security.token_service import JwtTokenService


TEST_JWT_SECRET = "test-secret-with-enough-length-for-hs256"


class InMemoryIdentityStore:
    """Dict-backed IdentityPort/OtpPort/RefreshTokenPort.

    Conditional writes hold a lock so they are atomic the way single-row
    UPDATEs are in the SQL repository.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.identities: dict[str, AuthIdentity] = {}
        self.profiles: dict[str, UserProfile] = {}
        self.otps: dict[str, OtpChallenge] = {}
        self.tokens: dict[str, RefreshToken] = {}
        self.fail_next_profile_create = False
        self.healthy = True

    # identities

    def get_identity(self, *, provider: str, identifier: str) -> AuthIdentity | None:
        for identity in self.identities.values():
            if identity.provider == provider and identity.identifier == identifier:
                return identity
        return None

    def get_identity_by_id(self, *, auth_id: str) -> AuthIdentity | None:
        return self.identities.get(auth_id)

    def get_identity_by_email(self, *, email: str) -> AuthIdentity | None:
        for identity in self.identities.values():
            if identity.email == email.lower():
                return identity
        return None

    def create_identity(self, *, auth_id: str, provider: str, identifier: str, email: str | None) -> AuthIdentity:
        with self._lock:
            if self.get_identity(provider=provider, identifier=identifier) is not None:
                raise ValueError("duplicate key value violates unique constraint")
            identity = AuthIdentity(
                id=auth_id,
                provider=provider,
                identifier=identifier,
                email=email.lower() if email else None,
            )
            self.identities[auth_id] = identity
        return identity

    def update_identity_email(self, *, auth_id: str, email: str) -> None:
        self.identities[auth_id] = replace(self.identities[auth_id], email=email.lower())

    def delete_identity(self, *, auth_id: str) -> None:
        self.identities.pop(auth_id, None)
        self.profiles.pop(auth_id, None)
        for token_id in [t.id for t in self.tokens.values() if t.auth_id == auth_id]:
            self.tokens.pop(token_id)

    def get_profile(self, *, auth_id: str) -> UserProfile | None:
        return self.profiles.get(auth_id)

    def create_profile(
        self,
        *,
        auth_id: str,
        name: str,
        gender: str,
        birth_year: int,
        created_at: datetime,
    ) -> UserProfile:
        if self.fail_next_profile_create:
            self.fail_next_profile_create = False
            raise RuntimeError("profile insert failed")
        profile = UserProfile(
            id=auth_id,
            name=name,
            gender=gender,
            birth_year=birth_year,
            created_at=created_at,
            updated_at=created_at,
        )
        self.profiles[auth_id] = profile
        return profile

    def ping(self) -> None:
        if not self.healthy:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    # otps

    def get_otp_challenge(self, *, phone: str) -> OtpChallenge | None:
        return self.otps.get(phone)

    def upsert_otp_challenge(
        self,
        *,
        phone: str,
        code: str,
        expires_at: datetime,
        created_at: datetime,
        replace_created_before: datetime,
    ) -> bool:
        with self._lock:
            current = self.otps.get(phone)
            if current is not None and current.created_at > replace_created_before:
                return False
            self.otps[phone] = OtpChallenge(
                phone=phone,
                code=code,
                attempts=0,
                expires_at=expires_at,
                created_at=created_at,
            )
            return True

    def seed_otp_challenge(self, *, phone: str, code: str, expires_at: datetime, created_at: datetime) -> None:
        self.upsert_otp_challenge(
            phone=phone,
            code=code,
            expires_at=expires_at,
            created_at=created_at,
            replace_created_before=created_at,
        )

    def consume_otp_challenge(self, *, phone: str, code: str, max_attempts: int, now: datetime) -> bool:
        with self._lock:
            challenge = self.otps.get(phone)
            if (
                challenge is None
                or challenge.code != code
                or challenge.attempts >= max_attempts
                or challenge.expires_at < now
            ):
                return False
            del self.otps[phone]
            return True

    def increment_otp_attempts(self, *, phone: str, max_attempts: int) -> int | None:
        with self._lock:
            challenge = self.otps.get(phone)
            if challenge is None or challenge.attempts >= max_attempts:
                return None
            self.otps[phone] = replace(challenge, attempts=challenge.attempts + 1)
            return challenge.attempts + 1

    def discard_spent_otp_challenge(self, *, phone: str, max_attempts: int, now: datetime) -> None:
        with self._lock:
            challenge = self.otps.get(phone)
            if challenge is not None and (challenge.expires_at < now or challenge.attempts >= max_attempts):
                del self.otps[phone]

    # tokens

    def create_refresh_token(
        self,
        *,
        token_id: str,
        auth_id: str,
        token_hash: str,
        device_info: dict[str, Any] | None,
        expires_at: datetime,
        created_at: datetime,
    ) -> RefreshToken:
        token = RefreshToken(
            id=token_id,
            auth_id=auth_id,
            token_hash=token_hash,
            device_info=device_info,
            expires_at=expires_at,
            revoked_at=None,
            last_used_at=None,
            created_at=created_at,
        )
        self.tokens[token_id] = token
        return token

    def get_refresh_token_by_hash(self, *, token_hash: str) -> RefreshToken | None:
        for token in self.tokens.values():
            if token.token_hash == token_hash:
                return token
        return None

    def rotate_refresh_token(
        self,
        *,
        token_id: str,
        current_token_hash: str,
        new_token_hash: str,
        expires_at: datetime,
        last_used_at: datetime,
    ) -> bool:
        with self._lock:
            token = self.tokens.get(token_id)
            if token is None or token.token_hash != current_token_hash or token.revoked_at is not None:
                return False
            self.tokens[token_id] = replace(
                token,
                token_hash=new_token_hash,
                expires_at=expires_at,
                last_used_at=last_used_at,
            )
            return True

    def revoke_refresh_token(self, *, token_hash: str, revoked_at: datetime) -> bool:
        with self._lock:
            token = self.get_refresh_token_by_hash(token_hash=token_hash)
            if token is None or token.revoked_at is not None:
                return False
            self.tokens[token.id] = replace(token, revoked_at=revoked_at)
            return True

    def list_active_refresh_tokens(self, *, auth_id: str, now: datetime) -> list[RefreshToken]:
        return [
            token
            for token in self.tokens.values()
            if token.auth_id == auth_id and token.revoked_at is None and token.expires_at > now
        ]

    # helpers

    def seed_user(
        self,
        *,
        auth_id: str = "auth-1",
        provider: str = "phone",
        identifier: str = "2125550123",
        email: str | None = None,
        with_profile: bool = True,
    ) -> AuthIdentity:
        identity = self.create_identity(auth_id=auth_id, provider=provider, identifier=identifier, email=email)
        if with_profile:
            self.create_profile(
                auth_id=auth_id,
                name="Ada Lovelace",
                gender="female",
                birth_year=1990,
                created_at=datetime.now(timezone.utc),
            )
        return identity


class RecordingSmsPort:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    def send_otp(self, *, phone: str, code: str) -> None:
        self.sent.append((phone, code))


class RecordingEmailPort:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    def send_welcome_email(self, *, to: str, name: str) -> None:
        self.sent.append((to, name))


class InlineDispatcher:
    """Runs tasks immediately; failures are recorded instead of propagated."""

    def __init__(self):
        self.labels: list[str] = []
        self.failures: list[tuple[str, Exception]] = []

    def fire_and_forget(self, label: str, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
        self.labels.append(label)
        try:
            fn(*args, **kwargs)
        except Exception as exc:
            self.failures.append((label, exc))


class FakeOAuthVerifier:
    def __init__(self):
        self.claims_by_token: dict[str, OAuthClaims | Exception] = {}

    def register(self, id_token: str, *, provider: str, subject: str, email: str | None) -> str:
        self.claims_by_token[id_token] = OAuthClaims(
            provider=provider,
            subject=subject,
            email=email,
            email_verified=email is not None,
        )
        return id_token

    def verify(self, *, id_token: str, provider: str) -> OAuthClaims:
        result = self.claims_by_token[id_token]
        if isinstance(result, Exception):
            raise result
        assert result.provider == provider
        return result


@pytest.fixture
def store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore()


@pytest.fixture
def token_service() -> JwtTokenService:
    return JwtTokenService(
        jwt_secret=TEST_JWT_SECRET,
        access_ttl_minutes=15,
        refresh_ttl_days=30,
        signup_ttl_minutes=15,
    )


@pytest.fixture
def sms() -> RecordingSmsPort:
    return RecordingSmsPort()


@pytest.fixture
def email_port() -> RecordingEmailPort:
    return RecordingEmailPort()


@pytest.fixture
def dispatcher() -> InlineDispatcher:
    return InlineDispatcher()


@pytest.fixture
def oauth_verifier() -> FakeOAuthVerifier:
    return FakeOAuthVerifier()
