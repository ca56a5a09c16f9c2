from __future__ import annotations

from auth_api.application.dto.auth import LogoutInput
from auth_api.application.ports.refresh_token_port import RefreshTokenPort
from auth_api.application.ports.token_port import TokenPort
from auth_api.domain.exceptions import UnauthorizedError

from .auth_common import utcnow


class LogoutSessionUseCase:
    def __init__(self, *, refresh_token_port: RefreshTokenPort, token_port: TokenPort):
        self._refresh_token_port = refresh_token_port
        self._token_port = token_port

    def execute(self, command: LogoutInput) -> None:
        token_hash = self._token_port.hash_refresh_token(refresh_token=command.refresh_token.strip())
        revoked = self._refresh_token_port.revoke_refresh_token(token_hash=token_hash, revoked_at=utcnow())
        if not revoked:
            raise UnauthorizedError("Invalid refresh token")
