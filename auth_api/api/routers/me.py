from __future__ import annotations

from fastapi import APIRouter, Depends

from auth_api.api.deps import get_current_profile, get_get_me_use_case
from auth_api.api.schemas.me import MeResponse
from auth_api.application.use_cases.get_me import GetMeUseCase
from auth_api.domain.entities.identity import AuthIdentity, UserProfile


router = APIRouter()


@router.get("/users/me", response_model=MeResponse)
def get_me(
    current: tuple[AuthIdentity, UserProfile] = Depends(get_current_profile),
    use_case: GetMeUseCase = Depends(get_get_me_use_case),
):
    identity, profile = current
    output = use_case.execute(identity=identity, profile=profile)
    return MeResponse(
        id=output.auth_id,
        provider=output.provider,
        email=output.email,
        name=output.name,
        gender=output.gender,
        birth_year=output.birth_year,
        created_at=output.created_at,
    )
