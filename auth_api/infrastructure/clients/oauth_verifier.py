from __future__ import annotations

import logging
from typing import Any, Mapping

import jwt

from auth_api.application.dto.auth import OAuthClaims
from auth_api.application.ports.oauth_verifier_port import (
    KeyResolverPort,
    KeyResolverUnavailableError,
    OAuthVerifierPort,
    SigningKeyNotFoundError,
)
from auth_api.domain.entities.identity import OAuthProvider
from auth_api.domain.exceptions import OAuthProviderUnavailableError, OAuthTokenInvalidError
from auth_api.domain.services.identity_linking import provider_display_name


logger = logging.getLogger(__name__)


GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
APPLE_JWKS_URL = "https://appleid.apple.com/auth/keys"

PROVIDER_ISSUERS: dict[str, tuple[str, ...]] = {
    "google": ("https://accounts.google.com", "accounts.google.com"),
    "apple": ("https://appleid.apple.com",),
}

# Apple lets users hide their address, so only Google tokens must carry one.
_EMAIL_REQUIRED = {"google": True, "apple": False}


class JwksKeyResolver(KeyResolverPort):
    def __init__(self, *, jwks_url: str, cache_lifespan_seconds: int = 3600, timeout_seconds: float = 10):
        self._jwks_url = jwks_url
        self._client = jwt.PyJWKClient(
            jwks_url,
            cache_keys=True,
            lifespan=cache_lifespan_seconds,
            timeout=timeout_seconds,
        )

    def get_signing_key(self, *, kid: str) -> Any:
        try:
            return self._client.get_signing_key(kid).key
        except jwt.PyJWKClientConnectionError as exc:
            raise KeyResolverUnavailableError(f"Unable to fetch {self._jwks_url}") from exc
        except jwt.PyJWKClientError as exc:
            raise SigningKeyNotFoundError(kid) from exc


class JwtOAuthVerifier(OAuthVerifierPort):
    def __init__(
        self,
        *,
        resolvers: Mapping[str, KeyResolverPort],
        client_ids: Mapping[str, tuple[str, ...]] | None = None,
        environment: str = "production",
        allow_unverified_tokens: bool = False,
    ):
        self._resolvers = dict(resolvers)
        self._client_ids = {provider: tuple(ids) for provider, ids in (client_ids or {}).items()}
        self._allow_unverified = allow_unverified_tokens and environment == "development"

    def verify(self, *, id_token: str, provider: OAuthProvider) -> OAuthClaims:
        name = provider_display_name(provider)
        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.PyJWTError as exc:
            logger.warning("oauth_verifier: malformed_token provider=%s", provider)
            raise OAuthTokenInvalidError(f"Invalid {name} ID token") from exc

        kid = header.get("kid")
        if not kid:
            raise OAuthTokenInvalidError(f"{name} token missing key ID")

        resolver = self._resolvers.get(provider)
        if resolver is None:
            raise OAuthProviderUnavailableError(f"{name} sign-in is not configured")

        try:
            key = resolver.get_signing_key(kid=kid)
        except SigningKeyNotFoundError as exc:
            logger.warning("oauth_verifier: unknown_kid provider=%s kid=%s", provider, kid)
            raise OAuthTokenInvalidError(f"Invalid {name} ID token") from exc
        except KeyResolverUnavailableError as exc:
            if not self._allow_unverified:
                logger.error("oauth_verifier: key_resolver_unavailable provider=%s error=%s", provider, exc)
                raise OAuthProviderUnavailableError() from exc
            logger.warning(
                "oauth_verifier: accepting_unverified_signature provider=%s kid=%s (development only)",
                provider,
                kid,
            )
            claims = self._decode(id_token, key=None, provider=provider, name=name)
        else:
            claims = self._decode(id_token, key=key, provider=provider, name=name)

        if claims.get("iss") not in PROVIDER_ISSUERS[provider]:
            logger.warning("oauth_verifier: issuer_mismatch provider=%s iss=%s", provider, claims.get("iss"))
            raise OAuthTokenInvalidError(f"Invalid {name} token issuer")

        return self._build_claims(claims, provider=provider, name=name)

    def _decode(self, id_token: str, *, key: Any, provider: str, name: str) -> dict[str, Any]:
        audience = self._client_ids.get(provider) or ()
        try:
            if key is None:
                return jwt.decode(
                    id_token,
                    options={
                        "verify_signature": False,
                        "verify_exp": True,
                        "verify_aud": False,
                        "require": ["exp", "iss"],
                    },
                )
            return jwt.decode(
                id_token,
                key,
                algorithms=["RS256"],
                audience=list(audience) or None,
                options={
                    "verify_aud": bool(audience),
                    "require": ["exp", "iss"],
                },
            )
        except jwt.ExpiredSignatureError as exc:
            raise OAuthTokenInvalidError(f"{name} token has expired") from exc
        except jwt.InvalidAudienceError as exc:
            logger.warning("oauth_verifier: audience_mismatch provider=%s", provider)
            raise OAuthTokenInvalidError(f"Invalid {name} token audience") from exc
        except jwt.PyJWTError as exc:
            logger.warning("oauth_verifier: verification_failed provider=%s reason=%s", provider, exc)
            raise OAuthTokenInvalidError(f"Invalid {name} ID token") from exc

    def _build_claims(self, claims: Mapping[str, Any], *, provider: OAuthProvider, name: str) -> OAuthClaims:
        subject = claims.get("sub")
        email = claims.get("email") if isinstance(claims.get("email"), str) else None

        if _EMAIL_REQUIRED[provider]:
            if not subject or not email:
                raise OAuthTokenInvalidError(f"Invalid {name} ID token: missing email or user ID")
        elif not subject:
            raise OAuthTokenInvalidError(f"Invalid {name} ID token: missing user ID")

        email_verified_raw = claims.get("email_verified", False)
        email_verified = bool(email_verified_raw)
        if isinstance(email_verified_raw, str):
            email_verified = email_verified_raw.lower() == "true"

        return OAuthClaims(
            provider=provider,
            subject=str(subject),
            email=email,
            email_verified=email_verified,
        )
