from __future__ import annotations

import logging

from auth_api.application.dto.auth import AuthTokensOutput, PhoneSignupInput
from auth_api.application.ports.background_port import BackgroundDispatcherPort
from auth_api.application.ports.identity_port import IdentityPort
from auth_api.application.ports.refresh_token_port import RefreshTokenPort
from auth_api.application.ports.token_port import TokenPort
from auth_api.domain.exceptions import ProfileIncompleteError, UserExistsError

from .auth_common import create_identity_with_profile, issue_tokens, raise_for_otp_result
from .verify_otp import VerifyOtpUseCase


logger = logging.getLogger(__name__)


class PhoneSignupUseCase:
    def __init__(
        self,
        *,
        identity_port: IdentityPort,
        refresh_token_port: RefreshTokenPort,
        token_port: TokenPort,
        verify_otp_use_case: VerifyOtpUseCase,
        dispatcher: BackgroundDispatcherPort,
    ):
        self._identity_port = identity_port
        self._refresh_token_port = refresh_token_port
        self._token_port = token_port
        self._verify_otp_use_case = verify_otp_use_case
        self._dispatcher = dispatcher

    def execute(self, command: PhoneSignupInput) -> AuthTokensOutput:
        result = self._verify_otp_use_case.execute(phone=command.phone, code=command.code)
        raise_for_otp_result(result)

        existing = self._identity_port.get_identity(provider="phone", identifier=command.phone)
        if existing is not None:
            if self._identity_port.get_profile(auth_id=existing.id) is not None:
                raise UserExistsError("User already exists. Please login instead.")
            raise ProfileIncompleteError("User profile incomplete. Please contact support.")

        identity = create_identity_with_profile(
            identity_port=self._identity_port,
            dispatcher=self._dispatcher,
            provider="phone",
            identifier=command.phone,
            email=None,
            profile=command.profile,
        )
        logger.info("phone_signup: created auth_id=%s", identity.id)
        return issue_tokens(
            auth_id=identity.id,
            refresh_token_port=self._refresh_token_port,
            token_port=self._token_port,
            device_info=command.device_info,
        )
