from __future__ import annotations

from datetime import datetime

from auth_api.application.ports.otp_port import OtpPort
from auth_api.domain.entities.identity import OtpChallenge
from auth_api.domain.services.otp import OtpVerificationResult, codes_match

from .auth_common import utcnow


class VerifyOtpUseCase:
    """One-time code check. Every terminal outcome deletes the challenge.

    Acceptance and the wrong-guess counter are single conditional writes, so
    concurrent verifications of one phone accept a code at most once and never
    after the attempt cap was reached.
    """

    def __init__(self, *, otp_port: OtpPort, max_attempts: int):
        self._otp_port = otp_port
        self._max_attempts = max_attempts

    def execute(self, *, phone: str, code: str) -> OtpVerificationResult:
        now = utcnow()
        challenge = self._otp_port.get_otp_challenge(phone=phone)
        spent = self._spent(challenge, phone=phone, now=now)
        if spent is not None:
            return spent

        if codes_match(challenge.code, code):
            consumed = self._otp_port.consume_otp_challenge(
                phone=phone,
                code=code,
                max_attempts=self._max_attempts,
                now=now,
            )
            if consumed:
                return OtpVerificationResult.VALID
            return self._settle(phone=phone, now=now)

        attempts = self._otp_port.increment_otp_attempts(phone=phone, max_attempts=self._max_attempts)
        if attempts is None:
            return self._settle(phone=phone, now=now)
        if attempts >= self._max_attempts:
            self._discard(phone=phone, now=now)
            return OtpVerificationResult.MAX_ATTEMPTS_EXCEEDED
        return OtpVerificationResult.INVALID

    def _settle(self, *, phone: str, now: datetime) -> OtpVerificationResult:
        # The row changed between the read and the conditional write.
        challenge = self._otp_port.get_otp_challenge(phone=phone)
        spent = self._spent(challenge, phone=phone, now=now)
        if spent is not None:
            return spent
        return OtpVerificationResult.INVALID

    def _spent(self, challenge: OtpChallenge | None, *, phone: str, now: datetime) -> OtpVerificationResult | None:
        if challenge is None:
            return OtpVerificationResult.NOT_FOUND
        if now > challenge.expires_at:
            self._discard(phone=phone, now=now)
            return OtpVerificationResult.EXPIRED
        if challenge.attempts >= self._max_attempts:
            self._discard(phone=phone, now=now)
            return OtpVerificationResult.MAX_ATTEMPTS_EXCEEDED
        return None

    def _discard(self, *, phone: str, now: datetime) -> None:
        self._otp_port.discard_spent_otp_challenge(phone=phone, max_attempts=self._max_attempts, now=now)
