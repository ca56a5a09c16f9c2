from __future__ import annotations

from datetime import datetime
from typing import Protocol

from auth_api.domain.entities.identity import OtpChallenge


class OtpPort(Protocol):
    def get_otp_challenge(self, *, phone: str) -> OtpChallenge | None:
        ...

    def upsert_otp_challenge(
        self,
        *,
        phone: str,
        code: str,
        expires_at: datetime,
        created_at: datetime,
        replace_created_before: datetime,
    ) -> bool:
        """Store a fresh challenge with zero attempts.

        An existing row is only replaced when its created_at is at or before
        `replace_created_before`. Returns False when the existing row was kept.
        """
        ...

    def consume_otp_challenge(self, *, phone: str, code: str, max_attempts: int, now: datetime) -> bool:
        """Atomically delete the challenge if the code matches, it has not
        expired and fewer than `max_attempts` wrong guesses were recorded."""
        ...

    def increment_otp_attempts(self, *, phone: str, max_attempts: int) -> int | None:
        """Bump the attempt counter while it is below `max_attempts`.

        Returns the new value, or None when no row was below the cap.
        """
        ...

    def discard_spent_otp_challenge(self, *, phone: str, max_attempts: int, now: datetime) -> None:
        """Delete the challenge only if it has expired or reached the cap."""
        ...
