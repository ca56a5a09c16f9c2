from __future__ import annotations

from auth_api.application.dto.auth import AuthTokensOutput, PhoneLoginInput
from auth_api.application.ports.identity_port import IdentityPort
from auth_api.application.ports.refresh_token_port import RefreshTokenPort
from auth_api.application.ports.token_port import TokenPort
from auth_api.domain.exceptions import ProfileIncompleteError, UserNotFoundError

from .auth_common import issue_tokens, raise_for_otp_result
from .verify_otp import VerifyOtpUseCase


class PhoneLoginUseCase:
    def __init__(
        self,
        *,
        identity_port: IdentityPort,
        refresh_token_port: RefreshTokenPort,
        token_port: TokenPort,
        verify_otp_use_case: VerifyOtpUseCase,
    ):
        self._identity_port = identity_port
        self._refresh_token_port = refresh_token_port
        self._token_port = token_port
        self._verify_otp_use_case = verify_otp_use_case

    def execute(self, command: PhoneLoginInput) -> AuthTokensOutput:
        result = self._verify_otp_use_case.execute(phone=command.phone, code=command.code)
        raise_for_otp_result(result)

        identity = self._identity_port.get_identity(provider="phone", identifier=command.phone)
        if identity is None:
            raise UserNotFoundError("User not found. Please sign up first.")
        if self._identity_port.get_profile(auth_id=identity.id) is None:
            raise ProfileIncompleteError("User profile incomplete. Please contact support.")

        return issue_tokens(
            auth_id=identity.id,
            refresh_token_port=self._refresh_token_port,
            token_port=self._token_port,
            device_info=command.device_info,
        )
