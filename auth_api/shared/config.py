from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _bool(name: str, default: bool = False) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _csv(name: str) -> tuple[str, ...]:
    value = _env(name, "") or ""
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    env: str
    log_level: str
    postgres_dsn: str
    jwt_secret: str
    access_token_ttl_minutes: int
    refresh_token_ttl_days: int
    refresh_cooldown_seconds: int
    otp_ttl_minutes: int
    otp_cooldown_seconds: int
    otp_max_attempts: int
    oauth_signup_ttl_minutes: int
    google_client_ids: tuple[str, ...]
    apple_client_ids: tuple[str, ...]
    google_jwks_url: str
    apple_jwks_url: str
    oauth_allow_unverified_tokens: bool
    app_name: str
    sms_api_url: str
    sms_api_key: str
    sms_sender_id: str
    email_provider: str
    email_api_key: str
    email_from: str
    background_workers: int
    host: str
    port: int

    @property
    def is_development(self) -> bool:
        return self.env == "development"


def get_settings() -> Settings:
    return Settings(
        env=_env("ENV", "production"),
        log_level=_env("LOG_LEVEL", "INFO"),
        postgres_dsn=_env("POSTGRES_DSN", ""),
        jwt_secret=_env("JWT_SECRET", ""),
        access_token_ttl_minutes=int(_env("ACCESS_TOKEN_TTL_MINUTES", "15")),
        refresh_token_ttl_days=int(_env("REFRESH_TOKEN_TTL_DAYS", "30")),
        refresh_cooldown_seconds=int(_env("REFRESH_COOLDOWN_SECONDS", "30")),
        otp_ttl_minutes=int(_env("OTP_TTL_MINUTES", "5")),
        otp_cooldown_seconds=int(_env("OTP_COOLDOWN_SECONDS", "60")),
        otp_max_attempts=int(_env("OTP_MAX_ATTEMPTS", "5")),
        oauth_signup_ttl_minutes=int(_env("OAUTH_SIGNUP_TTL_MINUTES", "15")),
        google_client_ids=_csv("GOOGLE_CLIENT_IDS"),
        apple_client_ids=_csv("APPLE_CLIENT_IDS"),
        google_jwks_url=_env("GOOGLE_JWKS_URL", "https://www.googleapis.com/oauth2/v3/certs"),
        apple_jwks_url=_env("APPLE_JWKS_URL", "https://appleid.apple.com/auth/keys"),
        oauth_allow_unverified_tokens=_bool("OAUTH_ALLOW_UNVERIFIED_TOKENS"),
        app_name=_env("APP_NAME", "MyApp"),
        sms_api_url=_env("SMS_API_URL", "https://bulksmsbd.net/api/smsapi"),
        sms_api_key=_env("SMS_API_KEY", ""),
        sms_sender_id=_env("SMS_SENDER_ID", ""),
        email_provider=_env("EMAIL_PROVIDER", ""),
        email_api_key=_env("EMAIL_API_KEY", ""),
        email_from=_env("EMAIL_FROM", ""),
        background_workers=int(_env("BACKGROUND_WORKERS", "4")),
        host=_env("HOST", "0.0.0.0"),
        port=int(_env("PORT", "8000")),
    )
