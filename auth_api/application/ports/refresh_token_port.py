from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from auth_api.domain.entities.identity import RefreshToken


class RefreshTokenPort(Protocol):
    def create_refresh_token(
        self,
        *,
        token_id: str,
        auth_id: str,
        token_hash: str,
        device_info: dict[str, Any] | None,
        expires_at: datetime,
        created_at: datetime,
    ) -> RefreshToken:
        ...

    def get_refresh_token_by_hash(self, *, token_hash: str) -> RefreshToken | None:
        ...

    def rotate_refresh_token(
        self,
        *,
        token_id: str,
        current_token_hash: str,
        new_token_hash: str,
        expires_at: datetime,
        last_used_at: datetime,
    ) -> bool:
        """Swap the token value in place; False when the row no longer holds ``current_token_hash``."""
        ...

    def revoke_refresh_token(self, *, token_hash: str, revoked_at: datetime) -> bool:
        ...

    def list_active_refresh_tokens(self, *, auth_id: str, now: datetime) -> list[RefreshToken]:
        ...
