from __future__ import annotations


class DomainError(Exception):
    """Base para erros de dominio."""

    code = "UNKNOWN_ERROR"
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, details: object | None = None):
        super().__init__(message or self.default_message)
        self.details = details

    @property
    def message(self) -> str:
        return str(self)


class UnauthorizedError(DomainError):
    """Credencial ausente ou recusada."""

    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class OtpInvalidError(DomainError):
    code = "OTP_INVALID"
    default_message = "Invalid OTP! Please check and try again."


class OtpExpiredError(DomainError):
    code = "EXPIRED_OTP"
    default_message = "OTP has expired"


class OtpMaxAttemptsError(DomainError):
    code = "OTP_MAX_ATTEMPTS"
    default_message = "Too many failed attempts. Please request a new OTP."


class OtpRateLimitedError(DomainError):
    code = "OTP_RATE_LIMITED"
    default_message = "Too many OTP requests, try again later"


class UserExistsError(DomainError):
    code = "USER_EXISTS"
    default_message = "User already exists"


class UserNotFoundError(DomainError):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


class ProfileIncompleteError(DomainError):
    """Identidade existe sem perfil (residuo de falha parcial)."""

    code = "PROFILE_INCOMPLETE"
    default_message = "User profile incomplete"


class IdentityConflictError(DomainError):
    code = "CONFLICT"
    default_message = "Resource already exists"


class OAuthTokenInvalidError(UnauthorizedError):
    """Token do provedor OAuth recusado."""


class OAuthProviderUnavailableError(DomainError):
    """Resolver de chaves do provedor inacessivel."""

    code = "SERVICE_UNAVAILABLE"
    default_message = "Identity provider temporarily unavailable"


class RefreshTokenInvalidError(DomainError):
    code = "INVALID_REFRESH_TOKEN"
    default_message = "Invalid or expired refresh token"


class RefreshRateLimitedError(DomainError):
    code = "RATE_LIMITED"
    default_message = "Too many requests, try again later"


class MissingAccessTokenError(DomainError):
    code = "MISSING_TOKEN"
    default_message = "Access token required"


class AccessTokenInvalidError(DomainError):
    code = "INVALID_TOKEN"
    default_message = "Invalid access token"


class AccessTokenExpiredError(DomainError):
    code = "EXPIRED_TOKEN"
    default_message = "Access token expired"
