from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth_api.domain import exceptions as domain_errors
from auth_api.shared.config import get_settings


logger = logging.getLogger(__name__)


_STATUS_BY_ERROR: tuple[tuple[type[domain_errors.DomainError], int], ...] = (
    (domain_errors.OtpRateLimitedError, 429),
    (domain_errors.RefreshRateLimitedError, 429),
    (domain_errors.UserExistsError, 409),
    (domain_errors.ProfileIncompleteError, 409),
    (domain_errors.IdentityConflictError, 409),
    (domain_errors.UserNotFoundError, 404),
    (domain_errors.OAuthProviderUnavailableError, 503),
)

_CODE_BY_STATUS = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
    503: "SERVICE_UNAVAILABLE",
}


def status_for_domain_error(exc: domain_errors.DomainError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    # Every remaining domain error is a refused or missing credential.
    return 401


def error_response(status_code: int, *, code: str, message: str, details: Any = None) -> JSONResponse:
    body: dict[str, Any] = {"error": message, "code": code}
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=body)


async def handle_domain_error(request: Request, exc: domain_errors.DomainError) -> JSONResponse:
    return error_response(
        status_for_domain_error(exc),
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    return error_response(422, code="VALIDATION_ERROR", message="Validation failed", details=details)


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _CODE_BY_STATUS.get(exc.status_code, "INTERNAL_ERROR" if exc.status_code >= 500 else "ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = "Resource not found"
    return error_response(exc.status_code, code=code, message=message)


async def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("errors: integrity_error method=%s url=%s", request.method, request.url.path)
    return error_response(409, code="CONFLICT", message="Resource already exists")


async def handle_operational_error(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("errors: database_unavailable method=%s url=%s error=%s", request.method, request.url.path, exc)
    return error_response(503, code="SERVICE_UNAVAILABLE", message="Database temporarily unavailable")


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("errors: unexpected_error method=%s url=%s", request.method, request.url)
    if get_settings().is_development:
        return error_response(500, code="INTERNAL_ERROR", message=f"Internal error: {exc}")
    return error_response(500, code="INTERNAL_ERROR", message="Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(domain_errors.DomainError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(IntegrityError, handle_integrity_error)
    app.add_exception_handler(OperationalError, handle_operational_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
