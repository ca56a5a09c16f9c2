from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from auth_api.api.deps import (
    get_current_profile,
    get_list_sessions_use_case,
    get_logout_session_use_case,
    get_oauth_sign_in_use_case,
    get_oauth_signup_use_case,
    get_phone_login_use_case,
    get_phone_signup_use_case,
    get_refresh_session_use_case,
    get_request_otp_use_case,
)
from auth_api.api.schemas.auth import (
    AuthTokenResponse,
    LogoutResponse,
    OAuthSignInRequest,
    OAuthSignupRequest,
    PendingSignupResponse,
    PhoneLoginRequest,
    PhoneSignupRequest,
    RefreshTokenRequest,
    RequestOtpRequest,
    RequestOtpResponse,
    SessionListResponse,
    SessionResponse,
)
from auth_api.application.dto.auth import (
    AuthTokensOutput,
    LogoutInput,
    OAuthSignInInput,
    OAuthSignupInput,
    PendingSignupOutput,
    PhoneLoginInput,
    PhoneSignupInput,
    ProfileInput,
    RefreshSessionInput,
    RequestOtpInput,
)
from auth_api.application.use_cases.list_sessions import ListSessionsUseCase
from auth_api.application.use_cases.logout_session import LogoutSessionUseCase
from auth_api.application.use_cases.oauth_sign_in import OAuthSignInUseCase
from auth_api.application.use_cases.oauth_signup import OAuthSignupUseCase
from auth_api.application.use_cases.phone_login import PhoneLoginUseCase
from auth_api.application.use_cases.phone_signup import PhoneSignupUseCase
from auth_api.application.use_cases.refresh_session import RefreshSessionUseCase
from auth_api.application.use_cases.request_otp import RequestOtpUseCase
from auth_api.domain.entities.identity import AuthIdentity, UserProfile


router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(output: AuthTokensOutput) -> AuthTokenResponse:
    return AuthTokenResponse(
        access_token=output.access_token,
        refresh_token=output.refresh_token,
        access_expires_at=output.access_expires_at,
        refresh_expires_at=output.refresh_expires_at,
    )


def _oauth_response(output: AuthTokensOutput | PendingSignupOutput) -> AuthTokenResponse | PendingSignupResponse:
    if isinstance(output, PendingSignupOutput):
        return PendingSignupResponse(
            provider=output.provider,
            provider_id=output.provider_id,
            email=output.email,
            signup_token=output.signup_token,
        )
    return _token_response(output)


@router.post("/phone/otp", response_model=RequestOtpResponse)
def request_otp(
    req: RequestOtpRequest,
    use_case: RequestOtpUseCase = Depends(get_request_otp_use_case),
):
    output = use_case.execute(RequestOtpInput(phone=req.phone, purpose=req.purpose))
    return RequestOtpResponse(user_exists=output.user_exists)


@router.post("/phone/signup", response_model=AuthTokenResponse, status_code=201)
def phone_signup(
    req: PhoneSignupRequest,
    use_case: PhoneSignupUseCase = Depends(get_phone_signup_use_case),
):
    output = use_case.execute(
        PhoneSignupInput(
            phone=req.phone,
            code=req.code,
            profile=ProfileInput(name=req.name, gender=req.gender, birth_year=req.birth_year),
            device_info=req.device_info.as_record() if req.device_info else None,
        )
    )
    return _token_response(output)


@router.post("/phone/login", response_model=AuthTokenResponse)
def phone_login(
    req: PhoneLoginRequest,
    use_case: PhoneLoginUseCase = Depends(get_phone_login_use_case),
):
    output = use_case.execute(
        PhoneLoginInput(
            phone=req.phone,
            code=req.code,
            device_info=req.device_info.as_record() if req.device_info else None,
        )
    )
    return _token_response(output)


@router.post("/google", response_model=AuthTokenResponse | PendingSignupResponse)
def google_sign_in(
    req: OAuthSignInRequest,
    use_case: OAuthSignInUseCase = Depends(get_oauth_sign_in_use_case),
):
    output = use_case.execute(
        OAuthSignInInput(
            provider="google",
            id_token=req.id_token,
            device_info=req.device_info.as_record() if req.device_info else None,
        )
    )
    return _oauth_response(output)


@router.post("/apple", response_model=AuthTokenResponse | PendingSignupResponse)
def apple_sign_in(
    req: OAuthSignInRequest,
    use_case: OAuthSignInUseCase = Depends(get_oauth_sign_in_use_case),
):
    output = use_case.execute(
        OAuthSignInInput(
            provider="apple",
            id_token=req.id_token,
            device_info=req.device_info.as_record() if req.device_info else None,
        )
    )
    return _oauth_response(output)


@router.post("/oauth/signup", response_model=AuthTokenResponse, status_code=201)
def oauth_signup(
    req: OAuthSignupRequest,
    response: Response,
    use_case: OAuthSignupUseCase = Depends(get_oauth_signup_use_case),
):
    output, created = use_case.execute(
        OAuthSignupInput(
            provider=req.provider,
            provider_id=req.provider_id,
            email=req.email,
            signup_token=req.signup_token,
            profile=ProfileInput(name=req.name, gender=req.gender, birth_year=req.birth_year),
            device_info=req.device_info.as_record() if req.device_info else None,
        )
    )
    if not created:
        response.status_code = 200
    return _token_response(output)


@router.post("/token/refresh", response_model=AuthTokenResponse)
def refresh_token(
    req: RefreshTokenRequest,
    use_case: RefreshSessionUseCase = Depends(get_refresh_session_use_case),
):
    output = use_case.execute(RefreshSessionInput(refresh_token=req.refresh_token))
    return _token_response(output)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    req: RefreshTokenRequest,
    use_case: LogoutSessionUseCase = Depends(get_logout_session_use_case),
):
    use_case.execute(LogoutInput(refresh_token=req.refresh_token))
    return LogoutResponse(message="Logged out")


@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(
    current: tuple[AuthIdentity, UserProfile] = Depends(get_current_profile),
    use_case: ListSessionsUseCase = Depends(get_list_sessions_use_case),
):
    identity, _ = current
    sessions = use_case.execute(auth_id=identity.id)
    return SessionListResponse(
        sessions=[
            SessionResponse(
                id=session.id,
                device_info=session.device_info,
                created_at=session.created_at,
                last_used_at=session.last_used_at,
                expires_at=session.expires_at,
            )
            for session in sessions
        ]
    )
