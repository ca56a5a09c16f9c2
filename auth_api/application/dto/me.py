from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from auth_api.domain.entities.identity import AuthProvider, Gender


@dataclass(frozen=True)
class MeOutput:
    auth_id: str
    provider: AuthProvider
    email: str | None
    name: str
    gender: Gender
    birth_year: int
    created_at: datetime
