from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from auth_api.api.deps import get_identity_repository
from auth_api.api.errors import error_response
from auth_api.api.schemas.health import HealthResponse
from auth_api.application.ports.identity_port import IdentityPort


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health(repository: IdentityPort = Depends(get_identity_repository)):
    try:
        repository.ping()
    except SQLAlchemyError as exc:
        logger.error("health: database_check_failed error=%s", exc)
        return error_response(503, code="SERVICE_UNAVAILABLE", message="Database connection failed")
    return HealthResponse(status="healthy")
