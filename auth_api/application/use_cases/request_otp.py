from __future__ import annotations

import logging
from datetime import timedelta

from auth_api.application.dto.auth import RequestOtpInput, RequestOtpOutput
from auth_api.application.ports.background_port import BackgroundDispatcherPort
from auth_api.application.ports.identity_port import IdentityPort
from auth_api.application.ports.notification_port import SmsPort
from auth_api.application.ports.otp_port import OtpPort
from auth_api.domain.exceptions import OtpRateLimitedError, UserExistsError
from auth_api.domain.services.otp import generate_otp_code

from .auth_common import utcnow


logger = logging.getLogger(__name__)


class RequestOtpUseCase:
    def __init__(
        self,
        *,
        identity_port: IdentityPort,
        otp_port: OtpPort,
        sms_port: SmsPort,
        dispatcher: BackgroundDispatcherPort,
        otp_ttl: timedelta,
        cooldown: timedelta,
    ):
        self._identity_port = identity_port
        self._otp_port = otp_port
        self._sms_port = sms_port
        self._dispatcher = dispatcher
        self._otp_ttl = otp_ttl
        self._cooldown = cooldown

    def execute(self, command: RequestOtpInput) -> RequestOtpOutput:
        phone = command.phone
        now = utcnow()

        recent = self._otp_port.get_otp_challenge(phone=phone)
        if recent is not None and recent.created_at > now - self._cooldown:
            raise OtpRateLimitedError()

        user_exists = self._user_exists(phone)
        if command.purpose == "login" and not user_exists:
            # No code for unknown phones on login; the client branches to signup.
            return RequestOtpOutput(user_exists=False)
        if command.purpose == "signup" and user_exists:
            raise UserExistsError("User already exists. Please login instead.")

        code = generate_otp_code()
        written = self._otp_port.upsert_otp_challenge(
            phone=phone,
            code=code,
            expires_at=now + self._otp_ttl,
            created_at=now,
            replace_created_before=now - self._cooldown,
        )
        if not written:
            raise OtpRateLimitedError()
        self._dispatcher.fire_and_forget("otp_sms", self._sms_port.send_otp, phone=phone, code=code)
        logger.info("request_otp: issued purpose=%s user_exists=%s", command.purpose, user_exists)
        return RequestOtpOutput(user_exists=user_exists)

    def _user_exists(self, phone: str) -> bool:
        identity = self._identity_port.get_identity(provider="phone", identifier=phone)
        if identity is None:
            return False
        return self._identity_port.get_profile(auth_id=identity.id) is not None
