from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from auth_api.application.dto.auth import AuthTokensOutput, ProfileInput
from auth_api.application.ports.background_port import BackgroundDispatcherPort
from auth_api.application.ports.identity_port import IdentityPort
from auth_api.application.ports.refresh_token_port import RefreshTokenPort
from auth_api.application.ports.token_port import TokenPort
from auth_api.domain.entities.identity import AuthIdentity, AuthProvider
from auth_api.domain.exceptions import (
    OtpExpiredError,
    OtpInvalidError,
    OtpMaxAttemptsError,
    UnauthorizedError,
)
from auth_api.domain.services.otp import OtpVerificationResult


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def raise_for_otp_result(result: OtpVerificationResult) -> None:
    if result is OtpVerificationResult.VALID:
        return
    if result is OtpVerificationResult.EXPIRED:
        raise OtpExpiredError()
    if result is OtpVerificationResult.MAX_ATTEMPTS_EXCEEDED:
        raise OtpMaxAttemptsError()
    if result is OtpVerificationResult.INVALID:
        raise OtpInvalidError()
    raise UnauthorizedError("No OTP found for this phone number")


def issue_tokens(
    *,
    auth_id: str,
    refresh_token_port: RefreshTokenPort,
    token_port: TokenPort,
    device_info: dict[str, Any] | None,
) -> AuthTokensOutput:
    now = utcnow()
    access_token, access_expires_at = token_port.create_access_token(auth_id=auth_id, now=now)
    refresh_token = token_port.generate_refresh_token()
    refresh_expires_at = token_port.refresh_token_expires_at(now=now)
    refresh_token_port.create_refresh_token(
        token_id=str(uuid4()),
        auth_id=auth_id,
        token_hash=token_port.hash_refresh_token(refresh_token=refresh_token),
        device_info=device_info,
        expires_at=refresh_expires_at,
        created_at=now,
    )
    return AuthTokensOutput(
        auth_id=auth_id,
        access_token=access_token,
        refresh_token=refresh_token,
        access_expires_at=access_expires_at,
        refresh_expires_at=refresh_expires_at,
    )


def create_identity_with_profile(
    *,
    identity_port: IdentityPort,
    dispatcher: BackgroundDispatcherPort,
    provider: AuthProvider,
    identifier: str,
    email: str | None,
    profile: ProfileInput,
) -> AuthIdentity:
    identity = identity_port.create_identity(
        auth_id=str(uuid4()),
        provider=provider,
        identifier=identifier,
        email=email,
    )
    try:
        identity_port.create_profile(
            auth_id=identity.id,
            name=profile.name,
            gender=profile.gender,
            birth_year=profile.birth_year,
            created_at=utcnow(),
        )
    except Exception:
        logger.warning(
            "auth_common: profile_create_failed auth_id=%s provider=%s scheduling_identity_rollback",
            identity.id,
            provider,
        )
        dispatcher.fire_and_forget(
            "identity_rollback",
            identity_port.delete_identity,
            auth_id=identity.id,
        )
        raise
    return identity
