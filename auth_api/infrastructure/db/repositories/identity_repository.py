from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, insert, or_, select, text, update
from sqlalchemy.dialects import postgresql, sqlite

from auth_api.application.ports.identity_port import IdentityPort
from auth_api.application.ports.otp_port import OtpPort
from auth_api.application.ports.refresh_token_port import RefreshTokenPort
from auth_api.infrastructure.db.mappers.auth_mapper import (
    map_row_to_auth_identity,
    map_row_to_otp_challenge,
    map_row_to_refresh_token,
    map_row_to_user_profile,
)
from auth_api.infrastructure.db.models.auth import AuthModel, OtpModel, RefreshTokenModel, UserModel


logger = logging.getLogger(__name__)

_auth = AuthModel.__table__
_users = UserModel.__table__
_otps = OtpModel.__table__
_tokens = RefreshTokenModel.__table__

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SqlIdentityRepository(IdentityPort, OtpPort, RefreshTokenPort):
    def __init__(self, engine):
        self._engine = engine

    # auth / users

    def get_identity(self, *, provider: str, identifier: str):
        stmt = (
            select(_auth)
            .where(_auth.c.provider == provider, _auth.c.identifier == identifier)
            .limit(1)
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        return map_row_to_auth_identity(row)

    def get_identity_by_id(self, *, auth_id: str):
        stmt = select(_auth).where(_auth.c.id == auth_id).limit(1)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        return map_row_to_auth_identity(row)

    def get_identity_by_email(self, *, email: str):
        stmt = select(_auth).where(_auth.c.email == email.lower()).limit(1)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        return map_row_to_auth_identity(row)

    def create_identity(
        self,
        *,
        auth_id: str,
        provider: str,
        identifier: str,
        email: str | None,
    ):
        stmt = (
            insert(_auth)
            .values(
                id=auth_id,
                provider=provider,
                identifier=identifier,
                email=email.lower() if email else None,
                created_at=datetime.now(timezone.utc),
            )
            .returning(_auth)
        )
        with self._engine.begin() as conn:
            row = conn.execute(stmt).mappings().one()
        return map_row_to_auth_identity(row)

    def update_identity_email(self, *, auth_id: str, email: str) -> None:
        stmt = update(_auth).where(_auth.c.id == auth_id).values(email=email.lower())
        with self._engine.begin() as conn:
            conn.execute(stmt)

    def delete_identity(self, *, auth_id: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(delete(_tokens).where(_tokens.c.auth_id == auth_id))
            conn.execute(delete(_users).where(_users.c.id == auth_id))
            result = conn.execute(delete(_auth).where(_auth.c.id == auth_id))
        logger.info("identity_repo: delete_identity auth_id=%s deleted=%s", auth_id, result.rowcount)

    def get_profile(self, *, auth_id: str):
        stmt = select(_users).where(_users.c.id == auth_id).limit(1)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        return map_row_to_user_profile(row)

    def create_profile(
        self,
        *,
        auth_id: str,
        name: str,
        gender: str,
        birth_year: int,
        created_at: datetime,
    ):
        stmt = (
            insert(_users)
            .values(
                id=auth_id,
                name=name,
                gender=gender,
                birth_year=birth_year,
                created_at=created_at,
                updated_at=created_at,
            )
            .returning(_users)
        )
        with self._engine.begin() as conn:
            row = conn.execute(stmt).mappings().one()
        return map_row_to_user_profile(row)

    def ping(self) -> None:
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    # otps

    def get_otp_challenge(self, *, phone: str):
        stmt = select(_otps).where(_otps.c.phone == phone).limit(1)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        return map_row_to_otp_challenge(row)

    def upsert_otp_challenge(
        self,
        *,
        phone: str,
        code: str,
        expires_at: datetime,
        created_at: datetime,
        replace_created_before: datetime,
    ) -> bool:
        dialect_insert = _UPSERT_DIALECTS.get(self._engine.dialect.name)
        if dialect_insert is None:
            raise RuntimeError(f"OTP upsert is not supported on dialect {self._engine.dialect.name!r}.")
        stmt = dialect_insert(_otps).values(
            phone=phone,
            code=code,
            attempts=0,
            expires_at=expires_at,
            created_at=created_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[_otps.c.phone],
            set_={
                "code": stmt.excluded.code,
                "attempts": 0,
                "expires_at": stmt.excluded.expires_at,
                "created_at": stmt.excluded.created_at,
            },
            where=_otps.c.created_at <= replace_created_before,
        ).returning(_otps.c.phone)
        with self._engine.begin() as conn:
            written = conn.execute(stmt).first() is not None
        if not written:
            logger.info("identity_repo: otp_upsert_skipped reason=cooldown")
        return written

    def consume_otp_challenge(self, *, phone: str, code: str, max_attempts: int, now: datetime) -> bool:
        stmt = delete(_otps).where(
            _otps.c.phone == phone,
            _otps.c.code == code,
            _otps.c.attempts < max_attempts,
            _otps.c.expires_at >= now,
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount == 1

    def increment_otp_attempts(self, *, phone: str, max_attempts: int) -> int | None:
        stmt = (
            update(_otps)
            .where(_otps.c.phone == phone, _otps.c.attempts < max_attempts)
            .values(attempts=_otps.c.attempts + 1)
            .returning(_otps.c.attempts)
        )
        with self._engine.begin() as conn:
            attempts = conn.execute(stmt).scalar()
        if attempts is None:
            return None
        return int(attempts)

    def discard_spent_otp_challenge(self, *, phone: str, max_attempts: int, now: datetime) -> None:
        stmt = delete(_otps).where(
            _otps.c.phone == phone,
            or_(_otps.c.expires_at < now, _otps.c.attempts >= max_attempts),
        )
        with self._engine.begin() as conn:
            conn.execute(stmt)

    # tokens

    def create_refresh_token(
        self,
        *,
        token_id: str,
        auth_id: str,
        token_hash: str,
        device_info: dict[str, Any] | None,
        expires_at: datetime,
        created_at: datetime,
    ):
        stmt = (
            insert(_tokens)
            .values(
                id=token_id,
                auth_id=auth_id,
                token_hash=token_hash,
                device_info=device_info,
                expires_at=expires_at,
                revoked_at=None,
                last_used_at=None,
                created_at=created_at,
            )
            .returning(_tokens)
        )
        with self._engine.begin() as conn:
            row = conn.execute(stmt).mappings().one()
        return map_row_to_refresh_token(row)

    def get_refresh_token_by_hash(self, *, token_hash: str):
        stmt = select(_tokens).where(_tokens.c.token_hash == token_hash).limit(1)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        return map_row_to_refresh_token(row)

    def rotate_refresh_token(
        self,
        *,
        token_id: str,
        current_token_hash: str,
        new_token_hash: str,
        expires_at: datetime,
        last_used_at: datetime,
    ) -> bool:
        stmt = (
            update(_tokens)
            .where(
                _tokens.c.id == token_id,
                _tokens.c.token_hash == current_token_hash,
                _tokens.c.revoked_at.is_(None),
            )
            .values(
                token_hash=new_token_hash,
                expires_at=expires_at,
                last_used_at=last_used_at,
            )
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount == 1

    def revoke_refresh_token(self, *, token_hash: str, revoked_at: datetime) -> bool:
        stmt = (
            update(_tokens)
            .where(_tokens.c.token_hash == token_hash, _tokens.c.revoked_at.is_(None))
            .values(revoked_at=revoked_at)
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount == 1

    def list_active_refresh_tokens(self, *, auth_id: str, now: datetime):
        stmt = (
            select(_tokens)
            .where(
                _tokens.c.auth_id == auth_id,
                _tokens.c.revoked_at.is_(None),
                _tokens.c.expires_at > now,
            )
            .order_by(_tokens.c.created_at.desc())
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [map_row_to_refresh_token(row) for row in rows]
