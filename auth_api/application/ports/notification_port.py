from __future__ import annotations

from typing import Protocol


class SmsPort(Protocol):
    def send_otp(self, *, phone: str, code: str) -> None:
        ...


class EmailPort(Protocol):
    def send_welcome_email(self, *, to: str, name: str) -> None:
        ...
