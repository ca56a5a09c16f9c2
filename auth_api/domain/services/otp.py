from __future__ import annotations

import secrets
from enum import Enum


OTP_LENGTH = 6

# Largest multiple of 10 that fits in a byte; bytes at or above it are resampled
# so that every digit keeps probability exactly 1/10.
_BYTE_REJECTION_LIMIT = 250


class OtpVerificationResult(str, Enum):
    VALID = "valid"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MAX_ATTEMPTS_EXCEEDED = "max_attempts_exceeded"
    INVALID = "invalid"


def _random_digit() -> int:
    while True:
        value = secrets.token_bytes(1)[0]
        if value < _BYTE_REJECTION_LIMIT:
            return value % 10


def generate_otp_code(length: int = OTP_LENGTH) -> str:
    return "".join(str(_random_digit()) for _ in range(length))


def codes_match(expected: str, provided: str) -> bool:
    return secrets.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))
