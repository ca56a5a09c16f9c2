from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


PHONE_PATTERN = re.compile(r"^[2-9]\d{2}[2-9](?!11)\d{2}\d{4}$")
OTP_PATTERN = re.compile(r"^\d{6}$")
REFRESH_TOKEN_PATTERN = r"^[0-9a-z]{24}$"
MIN_BIRTH_YEAR = 1900
MIN_AGE_YEARS = 13


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _validate_phone(value: str) -> str:
    digits = re.sub(r"\D", "", value)
    if not PHONE_PATTERN.match(digits):
        raise ValueError("Invalid phone number")
    return digits


def _validate_name(value: str) -> str:
    name = value.strip()
    if not 2 <= len(name) <= 50:
        raise ValueError("Name must be between 2 and 50 characters")
    for char in name:
        if char == " ":
            continue
        if unicodedata.category(char)[0] not in {"L", "M"}:
            raise ValueError("Name can only contain letters and spaces")
    return name


def _validate_birth_year(value: int) -> int:
    max_year = datetime.now(timezone.utc).year - MIN_AGE_YEARS
    if value < MIN_BIRTH_YEAR:
        raise ValueError(f"Birth year must be {MIN_BIRTH_YEAR} or later")
    if value > max_year:
        raise ValueError(f"You must be at least {MIN_AGE_YEARS} years old")
    return value


class DeviceInfoSchema(CamelModel):
    os: Literal["ios", "android", "windows", "macos", "web"]
    os_version: str = Field(..., min_length=1, max_length=64)
    model: str = Field(..., min_length=1, max_length=128)
    brand: str = Field(..., min_length=1, max_length=64)
    device_year_class: int | None = None
    app_version: str = Field(..., min_length=1, max_length=32)
    build_number: str = Field(..., min_length=1, max_length=32)

    def as_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ProfileFields(CamelModel):
    name: str
    gender: Literal["male", "female"]
    birth_year: int

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return _validate_name(value)

    @field_validator("birth_year")
    @classmethod
    def _check_birth_year(cls, value: int) -> int:
        return _validate_birth_year(value)


class PhoneFields(CamelModel):
    phone: str

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        return _validate_phone(value)


class OtpFields(PhoneFields):
    code: str

    @field_validator("code")
    @classmethod
    def _check_code(cls, value: str) -> str:
        if not OTP_PATTERN.match(value):
            raise ValueError("OTP must be 6 digits")
        return value


class RequestOtpRequest(PhoneFields):
    purpose: Literal["login", "signup"]


class RequestOtpResponse(CamelModel):
    user_exists: bool


class PhoneSignupRequest(OtpFields, ProfileFields):
    device_info: DeviceInfoSchema | None = None


class PhoneLoginRequest(OtpFields):
    device_info: DeviceInfoSchema | None = None


class OAuthSignInRequest(CamelModel):
    id_token: str = Field(..., min_length=100)
    device_info: DeviceInfoSchema | None = None


class OAuthSignupRequest(ProfileFields):
    provider: Literal["google", "apple"]
    provider_id: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    signup_token: str = Field(..., min_length=1)
    device_info: DeviceInfoSchema | None = None


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(..., pattern=REFRESH_TOKEN_PATTERN)


class AuthTokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    access_expires_at: datetime
    refresh_expires_at: datetime


class PendingSignupResponse(CamelModel):
    needs_signup: bool = True
    provider: Literal["google", "apple"]
    provider_id: str
    email: str | None
    signup_token: str


class LogoutResponse(CamelModel):
    message: str


class SessionResponse(CamelModel):
    id: str
    device_info: dict[str, Any] | None
    created_at: datetime
    last_used_at: datetime | None
    expires_at: datetime


class SessionListResponse(CamelModel):
    sessions: list[SessionResponse]
