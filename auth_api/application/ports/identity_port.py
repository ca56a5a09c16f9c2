from __future__ import annotations

from datetime import datetime
from typing import Protocol

from auth_api.domain.entities.identity import AuthIdentity, AuthProvider, Gender, UserProfile


class IdentityPort(Protocol):
    def get_identity(self, *, provider: AuthProvider, identifier: str) -> AuthIdentity | None:
        ...

    def get_identity_by_id(self, *, auth_id: str) -> AuthIdentity | None:
        ...

    def get_identity_by_email(self, *, email: str) -> AuthIdentity | None:
        ...

    def create_identity(
        self,
        *,
        auth_id: str,
        provider: AuthProvider,
        identifier: str,
        email: str | None,
    ) -> AuthIdentity:
        ...

    def update_identity_email(self, *, auth_id: str, email: str) -> None:
        ...

    def delete_identity(self, *, auth_id: str) -> None:
        ...

    def get_profile(self, *, auth_id: str) -> UserProfile | None:
        ...

    def create_profile(
        self,
        *,
        auth_id: str,
        name: str,
        gender: Gender,
        birth_year: int,
        created_at: datetime,
    ) -> UserProfile:
        ...

    def ping(self) -> None:
        ...
