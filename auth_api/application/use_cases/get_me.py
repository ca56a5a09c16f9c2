from __future__ import annotations

from auth_api.application.dto.me import MeOutput
from auth_api.domain.entities.identity import AuthIdentity, UserProfile


class GetMeUseCase:
    def execute(self, *, identity: AuthIdentity, profile: UserProfile) -> MeOutput:
        return MeOutput(
            auth_id=identity.id,
            provider=identity.provider,
            email=identity.email,
            name=profile.name,
            gender=profile.gender,
            birth_year=profile.birth_year,
            created_at=profile.created_at,
        )
