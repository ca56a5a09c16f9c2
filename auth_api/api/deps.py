from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Header, HTTPException

from auth_api.application.use_cases.get_me import GetMeUseCase
from auth_api.application.use_cases.list_sessions import ListSessionsUseCase
from auth_api.application.use_cases.logout_session import LogoutSessionUseCase
from auth_api.application.use_cases.oauth_sign_in import OAuthSignInUseCase
from auth_api.application.use_cases.oauth_signup import OAuthSignupUseCase
from auth_api.application.use_cases.phone_login import PhoneLoginUseCase
from auth_api.application.use_cases.phone_signup import PhoneSignupUseCase
from auth_api.application.use_cases.refresh_session import RefreshSessionUseCase
from auth_api.application.use_cases.request_otp import RequestOtpUseCase
from auth_api.application.use_cases.verify_otp import VerifyOtpUseCase
from auth_api.domain.entities.identity import AuthIdentity, UserProfile
from auth_api.domain.exceptions import (
    AccessTokenInvalidError,
    IdentityConflictError,
    MissingAccessTokenError,
)
from auth_api.infrastructure.background.dispatcher import ThreadPoolBackgroundDispatcher
from auth_api.infrastructure.clients.email_client import HttpEmailClient
from auth_api.infrastructure.clients.oauth_verifier import JwksKeyResolver, JwtOAuthVerifier
from auth_api.infrastructure.clients.sms_client import BulkSmsClient
from auth_api.infrastructure.db.engine import get_engine
from auth_api.infrastructure.db.repositories.identity_repository import SqlIdentityRepository
from auth_api.infrastructure.security.token_service import JwtTokenService
from auth_api.shared.config import get_settings


logger = logging.getLogger(__name__)


def _get_db_engine():
    settings = get_settings()
    if not settings.postgres_dsn:
        raise HTTPException(status_code=500, detail="POSTGRES_DSN is required.")
    return get_engine(settings.postgres_dsn)


def get_identity_repository() -> SqlIdentityRepository:
    return SqlIdentityRepository(_get_db_engine())


@lru_cache(maxsize=1)
def get_token_service() -> JwtTokenService:
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="JWT_SECRET is required.")
    return JwtTokenService(
        jwt_secret=settings.jwt_secret,
        access_ttl_minutes=settings.access_token_ttl_minutes,
        refresh_ttl_days=settings.refresh_token_ttl_days,
        signup_ttl_minutes=settings.oauth_signup_ttl_minutes,
    )


@lru_cache(maxsize=1)
def get_background_dispatcher() -> ThreadPoolBackgroundDispatcher:
    return ThreadPoolBackgroundDispatcher(max_workers=get_settings().background_workers)


@lru_cache(maxsize=1)
def get_oauth_verifier() -> JwtOAuthVerifier:
    settings = get_settings()
    return JwtOAuthVerifier(
        resolvers={
            "google": JwksKeyResolver(jwks_url=settings.google_jwks_url),
            "apple": JwksKeyResolver(jwks_url=settings.apple_jwks_url),
        },
        client_ids={
            "google": settings.google_client_ids,
            "apple": settings.apple_client_ids,
        },
        environment=settings.env,
        allow_unverified_tokens=settings.oauth_allow_unverified_tokens,
    )


@lru_cache(maxsize=1)
def get_sms_client() -> BulkSmsClient:
    settings = get_settings()
    return BulkSmsClient(
        app_name=settings.app_name,
        api_key=settings.sms_api_key,
        sender_id=settings.sms_sender_id,
        api_url=settings.sms_api_url,
        environment=settings.env,
    )


@lru_cache(maxsize=1)
def get_email_client() -> HttpEmailClient | None:
    settings = get_settings()
    if not settings.email_provider:
        logger.info("deps: EMAIL_PROVIDER not configured, welcome emails disabled")
        return None
    return HttpEmailClient(
        provider=settings.email_provider,
        api_key=settings.email_api_key,
        sender=settings.email_from,
        app_name=settings.app_name,
        environment=settings.env,
    )


def get_verify_otp_use_case(
    repository: SqlIdentityRepository = Depends(get_identity_repository),
) -> VerifyOtpUseCase:
    return VerifyOtpUseCase(otp_port=repository, max_attempts=get_settings().otp_max_attempts)


def get_request_otp_use_case(
    repository: SqlIdentityRepository = Depends(get_identity_repository),
    sms_client: BulkSmsClient = Depends(get_sms_client),
    dispatcher: ThreadPoolBackgroundDispatcher = Depends(get_background_dispatcher),
) -> RequestOtpUseCase:
    settings = get_settings()
    return RequestOtpUseCase(
        identity_port=repository,
        otp_port=repository,
        sms_port=sms_client,
        dispatcher=dispatcher,
        otp_ttl=timedelta(minutes=settings.otp_ttl_minutes),
        cooldown=timedelta(seconds=settings.otp_cooldown_seconds),
    )


def get_phone_signup_use_case(
    repository: SqlIdentityRepository = Depends(get_identity_repository),
    token_service: JwtTokenService = Depends(get_token_service),
    verify_otp_use_case: VerifyOtpUseCase = Depends(get_verify_otp_use_case),
    dispatcher: ThreadPoolBackgroundDispatcher = Depends(get_background_dispatcher),
) -> PhoneSignupUseCase:
    return PhoneSignupUseCase(
        identity_port=repository,
        refresh_token_port=repository,
        token_port=token_service,
        verify_otp_use_case=verify_otp_use_case,
        dispatcher=dispatcher,
    )


def get_phone_login_use_case(
    repository: SqlIdentityRepository = Depends(get_identity_repository),
    token_service: JwtTokenService = Depends(get_token_service),
    verify_otp_use_case: VerifyOtpUseCase = Depends(get_verify_otp_use_case),
) -> PhoneLoginUseCase:
    return PhoneLoginUseCase(
        identity_port=repository,
        refresh_token_port=repository,
        token_port=token_service,
        verify_otp_use_case=verify_otp_use_case,
    )


def get_oauth_sign_in_use_case(
    repository: SqlIdentityRepository = Depends(get_identity_repository),
    token_service: JwtTokenService = Depends(get_token_service),
    oauth_verifier: JwtOAuthVerifier = Depends(get_oauth_verifier),
) -> OAuthSignInUseCase:
    return OAuthSignInUseCase(
        identity_port=repository,
        refresh_token_port=repository,
        token_port=token_service,
        oauth_verifier=oauth_verifier,
    )


def get_oauth_signup_use_case(
    repository: SqlIdentityRepository = Depends(get_identity_repository),
    token_service: JwtTokenService = Depends(get_token_service),
    email_client: HttpEmailClient | None = Depends(get_email_client),
    dispatcher: ThreadPoolBackgroundDispatcher = Depends(get_background_dispatcher),
) -> OAuthSignupUseCase:
    return OAuthSignupUseCase(
        identity_port=repository,
        refresh_token_port=repository,
        token_port=token_service,
        email_port=email_client,
        dispatcher=dispatcher,
    )


def get_refresh_session_use_case(
    repository: SqlIdentityRepository = Depends(get_identity_repository),
    token_service: JwtTokenService = Depends(get_token_service),
) -> RefreshSessionUseCase:
    return RefreshSessionUseCase(
        identity_port=repository,
        refresh_token_port=repository,
        token_port=token_service,
        cooldown=timedelta(seconds=get_settings().refresh_cooldown_seconds),
    )


def get_logout_session_use_case(
    repository: SqlIdentityRepository = Depends(get_identity_repository),
    token_service: JwtTokenService = Depends(get_token_service),
) -> LogoutSessionUseCase:
    return LogoutSessionUseCase(refresh_token_port=repository, token_port=token_service)


def get_list_sessions_use_case(
    repository: SqlIdentityRepository = Depends(get_identity_repository),
) -> ListSessionsUseCase:
    return ListSessionsUseCase(refresh_token_port=repository)


def get_get_me_use_case() -> GetMeUseCase:
    return GetMeUseCase()


def get_current_identity(
    authorization: str | None = Header(default=None),
    token_service: JwtTokenService = Depends(get_token_service),
    repository: SqlIdentityRepository = Depends(get_identity_repository),
) -> AuthIdentity:
    if not authorization or not authorization.startswith("Bearer "):
        raise MissingAccessTokenError()
    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise MissingAccessTokenError()

    try:
        payload = token_service.decode_access_token(token=token)
    except AccessTokenInvalidError:
        # Expired tokens are not logged.
        logger.warning("deps: invalid_access_token token_prefix=%s", token[:10])
        raise

    identity = repository.get_identity_by_id(auth_id=payload.auth_id)
    if identity is None:
        raise IdentityConflictError("Profile required")
    return identity


def get_current_profile(
    identity: AuthIdentity = Depends(get_current_identity),
    repository: SqlIdentityRepository = Depends(get_identity_repository),
) -> tuple[AuthIdentity, UserProfile]:
    profile = repository.get_profile(auth_id=identity.id)
    if profile is None:
        raise IdentityConflictError("Profile required")
    return identity, profile
