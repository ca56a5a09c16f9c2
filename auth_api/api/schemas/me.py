from __future__ import annotations

from datetime import datetime

from auth_api.api.schemas.auth import CamelModel


class MeResponse(CamelModel):
    id: str
    provider: str
    email: str | None
    name: str
    gender: str
    birth_year: int
    created_at: datetime
