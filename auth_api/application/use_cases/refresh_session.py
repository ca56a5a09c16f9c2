from __future__ import annotations

import logging
from datetime import timedelta

from auth_api.application.dto.auth import AuthTokensOutput, RefreshSessionInput
from auth_api.application.ports.identity_port import IdentityPort
from auth_api.application.ports.refresh_token_port import RefreshTokenPort
from auth_api.application.ports.token_port import TokenPort
from auth_api.domain.exceptions import (
    RefreshRateLimitedError,
    RefreshTokenInvalidError,
    UnauthorizedError,
)

from .auth_common import utcnow


logger = logging.getLogger(__name__)


class RefreshSessionUseCase:
    def __init__(
        self,
        *,
        identity_port: IdentityPort,
        refresh_token_port: RefreshTokenPort,
        token_port: TokenPort,
        cooldown: timedelta,
    ):
        self._identity_port = identity_port
        self._refresh_token_port = refresh_token_port
        self._token_port = token_port
        self._cooldown = cooldown

    def execute(self, command: RefreshSessionInput) -> AuthTokensOutput:
        token = command.refresh_token.strip()
        if not token:
            raise RefreshTokenInvalidError()

        now = utcnow()
        current_hash = self._token_port.hash_refresh_token(refresh_token=token)
        stored = self._refresh_token_port.get_refresh_token_by_hash(token_hash=current_hash)
        if stored is None or stored.revoked_at is not None or stored.expires_at <= now:
            raise RefreshTokenInvalidError()

        if self._identity_port.get_identity_by_id(auth_id=stored.auth_id) is None:
            raise UnauthorizedError("User not found")

        if stored.last_used_at is not None and now - stored.last_used_at < self._cooldown:
            raise RefreshRateLimitedError()

        new_token = self._token_port.generate_refresh_token()
        new_expires_at = self._token_port.refresh_token_expires_at(now=now)
        rotated = self._refresh_token_port.rotate_refresh_token(
            token_id=stored.id,
            current_token_hash=current_hash,
            new_token_hash=self._token_port.hash_refresh_token(refresh_token=new_token),
            expires_at=new_expires_at,
            last_used_at=now,
        )
        if not rotated:
            # Another request rotated this row first; the presented value is spent.
            logger.warning("refresh_session: concurrent_rotation token_id=%s", stored.id)
            raise RefreshTokenInvalidError()

        access_token, access_expires_at = self._token_port.create_access_token(auth_id=stored.auth_id, now=now)
        return AuthTokensOutput(
            auth_id=stored.auth_id,
            access_token=access_token,
            refresh_token=new_token,
            access_expires_at=access_expires_at,
            refresh_expires_at=new_expires_at,
        )
