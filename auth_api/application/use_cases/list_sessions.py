from __future__ import annotations

from auth_api.application.dto.auth import SessionOutput
from auth_api.application.ports.refresh_token_port import RefreshTokenPort

from .auth_common import utcnow


class ListSessionsUseCase:
    def __init__(self, *, refresh_token_port: RefreshTokenPort):
        self._refresh_token_port = refresh_token_port

    def execute(self, *, auth_id: str) -> list[SessionOutput]:
        tokens = self._refresh_token_port.list_active_refresh_tokens(auth_id=auth_id, now=utcnow())
        return [
            SessionOutput(
                id=token.id,
                device_info=token.device_info,
                created_at=token.created_at,
                last_used_at=token.last_used_at,
                expires_at=token.expires_at,
            )
            for token in tokens
        ]
