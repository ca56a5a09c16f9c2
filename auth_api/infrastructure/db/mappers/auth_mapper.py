from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from auth_api.domain.entities.identity import AuthIdentity, OtpChallenge, RefreshToken, UserProfile


def _as_str(value: Any) -> str:
    return str(value)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands timestamps back without tzinfo; everything is stored in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def map_row_to_auth_identity(row: Mapping[str, Any]) -> AuthIdentity:
    return AuthIdentity(
        id=_as_str(row["id"]),
        provider=row["provider"],
        identifier=row["identifier"],
        email=row.get("email"),
    )


def map_row_to_user_profile(row: Mapping[str, Any]) -> UserProfile:
    return UserProfile(
        id=_as_str(row["id"]),
        name=row["name"],
        gender=row["gender"],
        birth_year=int(row["birth_year"]),
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )


def map_row_to_otp_challenge(row: Mapping[str, Any]) -> OtpChallenge:
    return OtpChallenge(
        phone=row["phone"],
        code=row["code"],
        attempts=int(row["attempts"]),
        expires_at=_as_utc(row["expires_at"]),
        created_at=_as_utc(row["created_at"]),
    )


def map_row_to_refresh_token(row: Mapping[str, Any]) -> RefreshToken:
    return RefreshToken(
        id=_as_str(row["id"]),
        auth_id=_as_str(row["auth_id"]),
        token_hash=row["token_hash"],
        device_info=row.get("device_info"),
        expires_at=_as_utc(row["expires_at"]),
        revoked_at=_as_utc(row.get("revoked_at")),
        last_used_at=_as_utc(row.get("last_used_at")),
        created_at=_as_utc(row["created_at"]),
    )
